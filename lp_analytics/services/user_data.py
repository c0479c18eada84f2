"""
Per-account data access for the presentation layer.

Reading and fetching are separate steps:

- accessors (`transactions`, `positions`, ...) are pure reads of the store and
  return None while a value has not been loaded;
- `ensure_*` coroutines load a value into the store if it is not cached.

Concurrent `ensure_*` calls for the same key share one in-flight task. A load
that fails is logged and leaves its slot empty, so the next call retries. A
load cancelled with `cancel(account)` never writes to the store.
"""
import asyncio
import logging
from datetime import datetime, timezone
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from lp_analytics.core.cache import AccountStore, ActionType, CacheKey, StoreAction, normalize
from lp_analytics.core.config import Settings, settings as default_settings
from lp_analytics.services.formatting import Timeframe, get_timeframe
from lp_analytics.services.liquidity_history import LiquidityWindow, get_user_liquidity_chart
from lp_analytics.services.models import DailyLiquidityValue, LiquidityPositionSnapshot, PairReturnPoint
from lp_analytics.services.returns import get_historical_pair_returns, get_lp_returns_on_pair
from lp_analytics.services.share_value import get_share_value_over_time

logger = logging.getLogger(__name__)

LoadKey = Tuple[str, str, Optional[str]]


def _as_datetime(now: Optional[int]) -> Optional[datetime]:
    return datetime.fromtimestamp(now, tz=timezone.utc) if now is not None else None


class UserDataService:
    def __init__(self, exchange, blocks_client, store: AccountStore, config: Settings = default_settings):
        self.exchange = exchange
        self.blocks_client = blocks_client
        self.store = store
        self.config = config
        self._inflight: Dict[LoadKey, asyncio.Task] = {}
        self._windows: Dict[str, LiquidityWindow] = {}

    # ---- accessors -------------------------------------------------------

    def transactions(self, account: str) -> Optional[Dict[str, List[Dict]]]:
        return self.store.get(account, CacheKey.TRANSACTIONS)

    def positions(self, account: str) -> Optional[List[Dict]]:
        return self.store.get(account, CacheKey.POSITIONS)

    def mining_positions(self, account: str) -> Optional[List[Dict]]:
        return self.store.get(account, CacheKey.MINING_POSITIONS)

    def snapshots(self, account: str) -> Optional[List[LiquidityPositionSnapshot]]:
        return self.store.get(account, CacheKey.SNAPSHOTS)

    def pair_returns(self, account: str, pair_address: str) -> Optional[List[PairReturnPoint]]:
        return self.store.get(account, CacheKey.PAIR_RETURNS, pair_address)

    # ---- load orchestration ---------------------------------------------

    async def _run(self, key: LoadKey, loader: Callable[[], Awaitable[None]]) -> None:
        try:
            await loader()
        except asyncio.CancelledError:
            logger.info(f"Load of {key[1]} for {key[0]} cancelled")
            raise
        except Exception as e:
            logger.error(f"Failed to load {key[1]} for {key[0]}: {e}")
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]

    async def _load(self, key: LoadKey, loader: Callable[[], Awaitable[None]]) -> None:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._run(key, loader))
            self._inflight[key] = task
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            # only swallow the cancellation of the shared load, never our own
            if not task.cancelled():
                raise

    def cancel(self, account: str) -> int:
        """Cancel every in-flight load for `account`; returns how many were cancelled"""
        account = normalize(account)
        cancelled = 0
        for key, task in list(self._inflight.items()):
            if key[0] == account:
                task.cancel()
                del self._inflight[key]
                cancelled += 1
        return cancelled

    async def close(self) -> None:
        tasks = list(self._inflight.values())
        self._inflight.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # ---- loaders ---------------------------------------------------------

    async def ensure_transactions(self, account: str) -> None:
        account = normalize(account)
        if not account or self.store.has(account, CacheKey.TRANSACTIONS):
            return

        async def load():
            transactions = await self.exchange.get_user_transactions(account)
            self.store.dispatch(StoreAction(ActionType.UPDATE_TRANSACTIONS, account, transactions))

        await self._load((account, CacheKey.TRANSACTIONS.value, None), load)

    async def ensure_snapshots(self, account: str) -> None:
        """Every snapshot of liquidity activity for the account"""
        account = normalize(account)
        if not account or self.store.has(account, CacheKey.SNAPSHOTS):
            return

        async def load():
            raw_snapshots = await self.exchange.get_user_snapshots(account)
            snapshots = [LiquidityPositionSnapshot.from_subgraph(raw) for raw in raw_snapshots]
            self.store.dispatch(StoreAction(ActionType.UPDATE_USER_POSITION_HISTORY, account, snapshots))

        await self._load((account, CacheKey.SNAPSHOTS.value, None), load)

    async def ensure_positions(self, account: str) -> None:
        """Current positions merged with their computed returns"""
        account = normalize(account)
        if not account or self.store.has(account, CacheKey.POSITIONS):
            return

        await self.ensure_snapshots(account)
        snapshots = self.snapshots(account)
        if snapshots is None:
            return

        async def load():
            native_price = await self.exchange.get_native_price_usd()
            if not native_price:
                logger.info(f"Deferring positions for {account}: no native price yet")
                return
            raw_positions = await self.exchange.get_user_positions(account)

            async def enrich(position: Dict[str, Any]) -> Dict[str, Any]:
                returns = await get_lp_returns_on_pair(
                    self.exchange, account, position["pair"], native_price, snapshots
                )
                return {**position, **returns.as_dict()}

            positions = await asyncio.gather(*(enrich(position) for position in raw_positions))
            self.store.dispatch(StoreAction(ActionType.UPDATE_POSITIONS, account, list(positions)))

        await self._load((account, CacheKey.POSITIONS.value, None), load)

    async def ensure_mining_positions(self, account: str) -> None:
        # farms are not indexed by the exchange subgraph; an account has none
        account = normalize(account)
        if not account or self.store.has(account, CacheKey.MINING_POSITIONS):
            return
        self.store.dispatch(StoreAction(ActionType.UPDATE_MINING_POSITIONS, account, []))

    async def ensure_pair_returns(
        self,
        account: str,
        pair_address: str,
        timeframe: Optional[Timeframe] = None,
        now: Optional[int] = None,
    ) -> None:
        """
        Daily value and fee history of the account's position on one pair.

        Nothing is computed until the pair's current data, the account's
        snapshots on that pair and the native price are all available.
        """
        account = normalize(account)
        pair_address = normalize(pair_address)
        if not account or not pair_address or self.store.has(account, CacheKey.PAIR_RETURNS, pair_address):
            return

        await self.ensure_snapshots(account)
        snapshots = self.snapshots(account)
        if snapshots is None:
            return

        async def load():
            pair_snapshots = [s for s in snapshots if s.pair_id == pair_address]
            current_pair_data = await self.exchange.get_pair_data(pair_address)
            native_price = await self.exchange.get_native_price_usd()
            if not pair_snapshots or not current_pair_data or not native_price:
                logger.info(f"Deferring returns on {pair_address} for {account}: inputs incomplete")
                return

            share_value_fetcher = partial(
                get_share_value_over_time,
                self.exchange,
                self.blocks_client,
                blocks_page_size=self.config.blocks_page_size,
                page_size=self.config.split_query_page_size,
                window_seconds=self.config.block_window_seconds,
            )
            history = await get_historical_pair_returns(
                share_value_fetcher,
                get_timeframe(timeframe, _as_datetime(now)),
                current_pair_data,
                pair_snapshots,
                native_price,
                now=now,
            )
            self.store.dispatch(StoreAction(
                ActionType.UPDATE_USER_PAIR_RETURNS, account, history, pair_address=pair_address
            ))

        await self._load((account, CacheKey.PAIR_RETURNS.value, pair_address), load)

    async def liquidity_chart(
        self,
        account: str,
        timeframe: Optional[Timeframe] = None,
        now: Optional[int] = None,
    ) -> Optional[List[DailyLiquidityValue]]:
        """
        Daily USD value of the account's liquidity across all pairs.

        The window start follows the selected timeframe but never narrows once
        a wider window has been requested for the account. Returns None while
        the inputs cannot be loaded.
        """
        account = normalize(account)
        if not account:
            return None

        await self.ensure_snapshots(account)
        snapshots = self.snapshots(account)
        if snapshots is None:
            return None

        window = self._windows.setdefault(account, LiquidityWindow())
        start_timestamp = window.update(timeframe, _as_datetime(now))
        try:
            return await get_user_liquidity_chart(self.exchange, snapshots, start_timestamp, now=now)
        except Exception as e:
            logger.error(f"Failed to build liquidity chart for {account}: {e}")
            return None
