from fastapi import APIRouter, HTTPException, Depends, Query
from fastapi.responses import JSONResponse
from typing import Any, Optional
import logging

from lp_analytics.core.cache import AccountStore
from lp_analytics.core.config import settings
from lp_analytics.core.errors import InvalidAddressError
from lp_analytics.services.formatting import Timeframe, is_address
from lp_analytics.services.subgraph import build_clients
from lp_analytics.services.user_data import UserDataService

logger = logging.getLogger(__name__)
router = APIRouter()

# Global service instance with lifecycle management
_user_data_service: Optional[UserDataService] = None

def get_user_data_service() -> UserDataService:
    """Dependency injection for UserDataService"""
    global _user_data_service
    if _user_data_service is None:
        exchange, blocks_client = build_clients(settings)
        store = AccountStore(ttl_seconds=settings.cache_ttl_seconds)
        _user_data_service = UserDataService(exchange, blocks_client, store, settings)
    return _user_data_service

async def close_user_data_service():
    """Cleanup on shutdown"""
    global _user_data_service
    if _user_data_service:
        await _user_data_service.close()
        await _user_data_service.exchange.close()
        await _user_data_service.blocks_client.close()
        _user_data_service = None


def _validate(address: str) -> str:
    if not is_address(address):
        raise InvalidAddressError(address)
    return address.lower()

def _bad_address(e: InvalidAddressError) -> HTTPException:
    return HTTPException(status_code=400, detail={"error_code": e.code, "message": e.user_msg})

def _respond(data: Any) -> Any:
    """Loaded values answer 200; values still missing answer 202"""
    if data is None:
        return JSONResponse(status_code=202, content={"status": "pending", "data": None})
    return {"status": "success", "data": data}


@router.get("/user/{account}/transactions")
async def get_user_transactions(
    account: str,
    service: UserDataService = Depends(get_user_data_service)
) -> Any:
    """Mints, burns and swaps made by the account"""
    try:
        account = _validate(account)
    except InvalidAddressError as e:
        raise _bad_address(e)
    await service.ensure_transactions(account)
    return _respond(service.transactions(account))


@router.get("/user/{account}/snapshots")
async def get_user_snapshots(
    account: str,
    service: UserDataService = Depends(get_user_data_service)
) -> Any:
    """Full liquidity snapshot history of the account"""
    try:
        account = _validate(account)
    except InvalidAddressError as e:
        raise _bad_address(e)
    await service.ensure_snapshots(account)
    return _respond(service.snapshots(account))


@router.get("/user/{account}/positions")
async def get_user_positions(
    account: str,
    service: UserDataService = Depends(get_user_data_service)
) -> Any:
    """Current positions enriched with principal, net return, uniswap return and fees"""
    try:
        account = _validate(account)
    except InvalidAddressError as e:
        raise _bad_address(e)
    await service.ensure_positions(account)
    return _respond(service.positions(account))


@router.get("/user/{account}/mining-positions")
async def get_user_mining_positions(
    account: str,
    service: UserDataService = Depends(get_user_data_service)
) -> Any:
    try:
        account = _validate(account)
    except InvalidAddressError as e:
        raise _bad_address(e)
    await service.ensure_mining_positions(account)
    return _respond(service.mining_positions(account))


@router.get("/user/{account}/pairs/{pair_address}/returns")
async def get_user_pair_returns(
    account: str,
    pair_address: str,
    timeframe: Optional[Timeframe] = Query(None, description="Chart window"),
    service: UserDataService = Depends(get_user_data_service)
) -> Any:
    """Daily position value and cumulative fees on one pair"""
    try:
        account = _validate(account)
        pair_address = _validate(pair_address)
    except InvalidAddressError as e:
        raise _bad_address(e)
    await service.ensure_pair_returns(account, pair_address, timeframe)
    return _respond(service.pair_returns(account, pair_address))


@router.get("/user/{account}/liquidity-chart")
async def get_user_liquidity_chart(
    account: str,
    timeframe: Optional[Timeframe] = Query(None, description="Chart window"),
    service: UserDataService = Depends(get_user_data_service)
) -> Any:
    """Daily USD value of the account's liquidity across all pairs"""
    try:
        account = _validate(account)
    except InvalidAddressError as e:
        raise _bad_address(e)
    return _respond(await service.liquidity_chart(account, timeframe))
