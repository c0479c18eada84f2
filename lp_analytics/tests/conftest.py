import asyncio
import re
from typing import Dict, List, Optional

import pytest

from lp_analytics.core.cache import AccountStore
from lp_analytics.core.config import Settings
from lp_analytics.services.models import LiquidityPositionSnapshot, Principal

ACCOUNT = "0xd8da6bf26964af9d7eed9e03e53415d37aa96045"
PAIR_A = "0x1111111111111111111111111111111111111111"
PAIR_B = "0x2222222222222222222222222222222222222222"

BLOCK_ALIAS = re.compile(r"t(\d+): blocks\(")
PAIR_ALIAS = re.compile(r't(\d+): pair\(id: "([^"]+)", block: \{ number: (\d+) \}\)')


class FakeBlocksSubgraph:
    """Answers aliased block lookups from a timestamp => block number map"""

    def __init__(self, blocks: Dict[int, Optional[int]]):
        self.blocks = blocks
        self.documents: List[str] = []

    async def query(self, document: str, variables: Optional[dict] = None) -> dict:
        self.documents.append(document)
        if variables is not None:
            number = self.blocks.get(variables["timestampFrom"])
            return {"blocks": [{"number": str(number)}] if number is not None else []}
        result = {}
        for timestamp in BLOCK_ALIAS.findall(document):
            number = self.blocks.get(int(timestamp))
            result[f"t{timestamp}"] = [{"number": str(number)}] if number is not None else []
        return result


class FakeExchangeSubgraph:
    """In-memory exchange subgraph with call counters"""

    def __init__(
        self,
        snapshots: Optional[List[dict]] = None,
        positions: Optional[List[dict]] = None,
        pair_data: Optional[dict] = None,
        native_price: float = 1.0,
        pair_states: Optional[Dict[int, dict]] = None,
        day_datas: Optional[List[dict]] = None,
        principal: Optional[Principal] = None,
    ):
        self.raw_snapshots = snapshots or []
        self.raw_positions = positions or []
        self.pair_data = pair_data
        self.native_price = native_price
        self.pair_states = pair_states or {}
        self.day_datas = day_datas or []
        self.principal = principal or Principal()
        self.calls: Dict[str, int] = {}
        self.day_data_requests: List[tuple] = []
        self.fail_next: Dict[str, Exception] = {}
        self.gate: Optional[asyncio.Event] = None

    def _record(self, name: str):
        self.calls[name] = self.calls.get(name, 0) + 1
        error = self.fail_next.pop(name, None)
        if error is not None:
            raise error

    async def query(self, document: str, variables: Optional[dict] = None) -> dict:
        self._record("query")
        result = {}
        for timestamp, _, number in PAIR_ALIAS.findall(document):
            result[f"t{timestamp}"] = self.pair_states.get(int(number))
        return result

    async def get_user_transactions(self, user: str) -> dict:
        await asyncio.sleep(0)
        self._record("get_user_transactions")
        return {"mints": [{"id": "m1"}], "burns": [], "swaps": []}

    async def get_user_snapshots(self, user: str) -> List[dict]:
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(0)
        self._record("get_user_snapshots")
        return list(self.raw_snapshots)

    async def get_user_positions(self, user: str) -> List[dict]:
        self._record("get_user_positions")
        return list(self.raw_positions)

    async def get_pair_data(self, pair_address: str) -> Optional[dict]:
        self._record("get_pair_data")
        return self.pair_data

    async def get_native_price_usd(self) -> float:
        self._record("get_native_price_usd")
        return self.native_price

    async def get_principal_for_user_per_pair(self, user: str, pair_address: str) -> Principal:
        self._record("get_principal_for_user_per_pair")
        return self.principal

    async def get_pair_day_datas(self, pair_addresses, start_timestamp: int) -> List[dict]:
        self._record("get_pair_day_datas")
        self.day_data_requests.append((list(pair_addresses), start_timestamp))
        return list(self.day_datas)


def raw_snapshot(timestamp: int, pair: str, balance: float, supply: float = 100,
                 reserve0: float = 1000, reserve1: float = 1000, reserve_usd: float = 2000,
                 price0: float = 1, price1: float = 1) -> dict:
    """Snapshot record shaped like the subgraph response"""
    return {
        "timestamp": str(timestamp),
        "pair": {"id": pair},
        "liquidityTokenBalance": str(balance),
        "liquidityTokenTotalSupply": str(supply),
        "reserve0": str(reserve0),
        "reserve1": str(reserve1),
        "reserveUSD": str(reserve_usd),
        "token0PriceUSD": str(price0),
        "token1PriceUSD": str(price1),
    }


def snapshot(timestamp: int, pair: str, balance: float, **kwargs) -> LiquidityPositionSnapshot:
    return LiquidityPositionSnapshot.from_subgraph(raw_snapshot(timestamp, pair, balance, **kwargs))


def pair_data(pair: str, supply: float = 100, reserve0: float = 1100, reserve1: float = 1100,
              reserve_usd: float = 2200, price0: str = "1", price1: str = "1",
              derived_celo: Optional[tuple] = None) -> dict:
    """Pair record shaped like the PairFields selection"""
    token0 = {"id": "0xaaa", "symbol": "CELO", "derivedCUSD": price0}
    token1 = {"id": "0xbbb", "symbol": "cUSD", "derivedCUSD": price1}
    if derived_celo is not None:
        token0["derivedCELO"], token1["derivedCELO"] = derived_celo
    return {
        "id": pair,
        "totalSupply": str(supply),
        "reserve0": str(reserve0),
        "reserve1": str(reserve1),
        "reserveUSD": str(reserve_usd),
        "token0": token0,
        "token1": token1,
        "createdAtTimestamp": "0",
    }


@pytest.fixture
def test_settings():
    return Settings(_env_file=None, cache_ttl_seconds=None)


@pytest.fixture
def store():
    return AccountStore()
