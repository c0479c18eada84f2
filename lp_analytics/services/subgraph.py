"""
GraphQL access to the exchange and blocks subgraphs.

`SubgraphClient` is the transport: it posts a document and returns the `data`
object, raising `SubgraphError` for anything else so callers never see a
partial result. `ExchangeSubgraph` holds the exchange-specific fetchers the
analytics pipeline needs.
"""
import httpx
import logging
from typing import Any, Dict, List, Optional, Sequence

from lp_analytics.core.config import Settings, settings as default_settings
from lp_analytics.core.errors import ErrorCode, SubgraphError
from lp_analytics.core.retry import CircuitBreaker, retry_on_transport_error
from lp_analytics.services import queries
from lp_analytics.services.formatting import to_float
from lp_analytics.services.models import Principal
from lp_analytics.services.pagination import paginate_by_skip

logger = logging.getLogger(__name__)


class SubgraphClient:
    """Async GraphQL client for one subgraph endpoint"""

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        retry_attempts: int = 1,
        breaker: Optional[CircuitBreaker] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.circuit_breaker = breaker or CircuitBreaker(name=url)
        self._post = retry_on_transport_error(retry_attempts)(self._post_once)

    async def close(self):
        """Close HTTP client"""
        await self.client.aclose()

    async def _post_once(self, payload: Dict[str, Any]) -> httpx.Response:
        response = await self.client.post(self.url, json=payload)
        response.raise_for_status()
        return response

    async def query(self, document: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Execute a GraphQL query and return its `data` object"""
        payload: Dict[str, Any] = {"query": document}
        if variables:
            payload["variables"] = variables
        return await self.circuit_breaker(self._execute)(payload)

    async def _execute(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self._post(payload)
        except httpx.HTTPStatusError as e:
            logger.error(f"Subgraph query failed: {e.response.status_code}")
            raise SubgraphError(self.url, f"HTTP {e.response.status_code}", ErrorCode.NETWORK_ERROR) from e
        except httpx.HTTPError as e:
            logger.error(f"Subgraph query error: {e}")
            raise SubgraphError(self.url, str(e) or type(e).__name__, ErrorCode.NETWORK_ERROR) from e

        try:
            body = response.json()
        except ValueError as e:
            raise SubgraphError(self.url, "response is not JSON") from e

        if body.get("errors"):
            logger.error(f"Subgraph error: {body['errors']}")
            raise SubgraphError(self.url, str(body["errors"]))

        data = body.get("data")
        if data is None:
            raise SubgraphError(self.url, "response has no data")
        return data


class ExchangeSubgraph:
    """Fetchers for the exchange subgraph entities used by the dashboard"""

    def __init__(self, client: SubgraphClient, snapshots_page_size: int = 1000):
        self.client = client
        self.snapshots_page_size = snapshots_page_size

    async def close(self):
        await self.client.close()

    async def query(self, document: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.client.query(document, variables)

    async def get_user_transactions(self, user: str) -> Dict[str, List[Dict]]:
        """Mints, burns and swaps made by `user`"""
        data = await self.client.query(queries.USER_TRANSACTIONS, {"user": user.lower()})
        return {
            "mints": data.get("mints") or [],
            "burns": data.get("burns") or [],
            "swaps": data.get("swaps") or [],
        }

    async def get_user_snapshots(self, user: str) -> List[Dict]:
        """
        All liquidity position snapshots of `user`.

        The subgraph caps list results, so pages of `snapshots_page_size` are
        requested until a short page signals the end.
        """
        async def fetch_page(skip: int, first: int) -> List[Dict]:
            data = await self.client.query(
                queries.USER_HISTORY,
                {"user": user.lower(), "skip": skip, "first": first},
            )
            return data.get("liquidityPositionSnapshots") or []

        snapshots = await paginate_by_skip(fetch_page, self.snapshots_page_size)
        logger.info(f"Found {len(snapshots)} snapshots for {user[:10]}...")
        return snapshots

    async def get_user_positions(self, user: str) -> List[Dict]:
        data = await self.client.query(queries.USER_POSITIONS, {"user": user.lower()})
        positions = data.get("liquidityPositions") or []
        logger.info(f"Found {len(positions)} positions for {user[:10]}...")
        return positions

    async def get_pair_data(self, pair_address: str) -> Optional[Dict]:
        """Current aggregate state of one pair, or None when unknown"""
        data = await self.client.query(queries.PAIR_DATA, {"pairAddress": pair_address.lower()})
        pairs = data.get("pairs") or []
        return pairs[0] if pairs else None

    async def get_native_price_usd(self) -> float:
        """Current CELO price in USD"""
        data = await self.client.query(queries.NATIVE_PRICE)
        bundles = data.get("bundles") or []
        if not bundles:
            return 0.0
        return to_float(bundles[0].get("celoPrice"))

    async def get_principal_for_user_per_pair(self, user: str, pair_address: str) -> Principal:
        """Net USD and token amounts `user` has added to a pair (mints minus burns)"""
        data = await self.client.query(
            queries.USER_MINTS_BURNS_PER_PAIR,
            {"user": user.lower(), "pair": pair_address.lower()},
        )
        usd = amount0 = amount1 = 0.0
        for mint in data.get("mints") or []:
            usd += to_float(mint.get("amountUSD"))
            amount0 += to_float(mint.get("amount0"))
            amount1 += to_float(mint.get("amount1"))
        for burn in data.get("burns") or []:
            usd -= to_float(burn.get("amountUSD"))
            amount0 -= to_float(burn.get("amount0"))
            amount1 -= to_float(burn.get("amount1"))
        return Principal(usd=usd, amount0=amount0, amount1=amount1)

    async def get_pair_day_datas(self, pair_addresses: Sequence[str], start_timestamp: int) -> List[Dict]:
        """Daily aggregates for every pair in `pair_addresses` after `start_timestamp`"""
        pairs = sorted({address.lower() for address in pair_addresses})
        if not pairs:
            return []

        async def fetch_page(skip: int, first: int) -> List[Dict]:
            data = await self.client.query(
                queries.PAIR_DAY_DATA_BULK,
                {"pairs": pairs, "startTimestamp": int(start_timestamp), "skip": skip, "first": first},
            )
            return data.get("pairDayDatas") or []

        return await paginate_by_skip(fetch_page, self.snapshots_page_size)


def build_clients(config: Settings = default_settings):
    """Exchange and blocks clients configured from settings"""
    exchange_client = SubgraphClient(
        config.exchange_subgraph_url,
        timeout=config.request_timeout,
        retry_attempts=config.subgraph_retry_attempts,
        breaker=CircuitBreaker(config.circuit_breaker_threshold, config.circuit_breaker_timeout, "exchange subgraph"),
    )
    blocks_client = SubgraphClient(
        config.blocks_subgraph_url,
        timeout=config.request_timeout,
        retry_attempts=config.subgraph_retry_attempts,
        breaker=CircuitBreaker(config.circuit_breaker_threshold, config.circuit_breaker_timeout, "blocks subgraph"),
    )
    return ExchangeSubgraph(exchange_client, config.snapshots_page_size), blocks_client
