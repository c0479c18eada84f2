"""
Daily USD valuation of everything an account holds across pools.

For each UTC day from the start of the window (or the account's first LP
activity, if earlier) up to yesterday, the running LP token balance per pool
is multiplied by that pool's most recent daily state.
"""
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

from lp_analytics.services.formatting import Timeframe, start_of_day
from lp_analytics.services.models import DailyLiquidityValue, LiquidityPositionSnapshot, PairDayData

logger = logging.getLogger(__name__)

DAY_SECONDS = 86400


def liquidity_window_start(timeframe: Optional[Timeframe], now: Optional[datetime] = None) -> int:
    """Window start for the account liquidity chart"""
    utc_end_time = now if now is not None else datetime.now(timezone.utc)
    if timeframe == Timeframe.WEEK:
        utc_start_time = start_of_day(utc_end_time - timedelta(weeks=1))
    elif timeframe == Timeframe.ALL_TIME:
        utc_start_time = utc_end_time - timedelta(days=365)
    else:
        utc_start_time = start_of_day(utc_end_time.replace(month=1, day=1))
    return int(utc_start_time.timestamp()) - 1


class LiquidityWindow:
    """Start bound of the liquidity chart; it only ever moves earlier"""

    def __init__(self):
        self.start_timestamp: Optional[int] = None

    def update(self, timeframe: Optional[Timeframe], now: Optional[datetime] = None) -> int:
        start_time = liquidity_window_start(timeframe, now)
        if self.start_timestamp is None or start_time < self.start_timestamp:
            self.start_timestamp = start_time
        return self.start_timestamp


def _most_recent_day_data(day_datas: Sequence[PairDayData], day_timestamp: int) -> Optional[PairDayData]:
    """
    Latest record dated strictly before `day_timestamp` from date-sorted
    records. Falls back to the earliest record when none precedes the day.
    """
    if not day_datas:
        return None
    most_recent = day_datas[0]
    for day_data in day_datas:
        if day_data.date >= day_timestamp:
            break
        most_recent = day_data
    return most_recent


def build_liquidity_history(
    snapshots: Sequence[LiquidityPositionSnapshot],
    pair_day_datas: Sequence[PairDayData],
    start_timestamp: int,
    now: Optional[int] = None,
) -> List[DailyLiquidityValue]:
    """Daily USD value of an account's liquidity, oldest first, today excluded"""
    if not snapshots:
        return []

    current_time = int(now if now is not None else time.time())
    sorted_snapshots = sorted(snapshots, key=lambda s: s.timestamp)

    day_index = int(start_timestamp) // DAY_SECONDS
    first_snapshot_day = sorted_snapshots[0].timestamp // DAY_SECONDS
    if first_snapshot_day < day_index:
        day_index = first_snapshot_day
    current_day_index = current_time // DAY_SECONDS

    day_datas_per_pair: Dict[str, List[PairDayData]] = {}
    for day_data in pair_day_datas:
        day_datas_per_pair.setdefault(day_data.pair_address, []).append(day_data)
    for records in day_datas_per_pair.values():
        records.sort(key=lambda d: d.date)

    # pair => (lp token balance, timestamp of the snapshot it came from)
    ownership_per_pair: Dict[str, tuple] = {}
    formatted_history: List[DailyLiquidityValue] = []
    cursor = 0

    for day in range(day_index, current_day_index):
        day_timestamp = day * DAY_SECONDS
        timestamp_ceiling = day_timestamp + DAY_SECONDS

        while cursor < len(sorted_snapshots) and sorted_snapshots[cursor].timestamp < timestamp_ceiling:
            snapshot = sorted_snapshots[cursor]
            known = ownership_per_pair.get(snapshot.pair_id)
            if known is None or known[1] <= snapshot.timestamp:
                ownership_per_pair[snapshot.pair_id] = (snapshot.liquidity_token_balance, snapshot.timestamp)
            cursor += 1

        daily_usd = 0.0
        for pair_address, (lp_token_balance, _) in ownership_per_pair.items():
            day_data = _most_recent_day_data(day_datas_per_pair.get(pair_address, []), day_timestamp)
            if day_data is None or not day_data.total_supply:
                continue
            daily_usd += lp_token_balance / day_data.total_supply * day_data.reserve_usd

        formatted_history.append(DailyLiquidityValue(date=day_timestamp, value_usd=daily_usd))

    return formatted_history


async def get_user_liquidity_chart(
    exchange,
    snapshots: Sequence[LiquidityPositionSnapshot],
    start_timestamp: int,
    now: Optional[int] = None,
) -> List[DailyLiquidityValue]:
    """Fetch day data for every pool the account ever held and value it daily"""
    if not snapshots:
        return []

    earliest = min(snapshot.timestamp for snapshot in snapshots)
    effective_start = min(int(start_timestamp), (earliest // DAY_SECONDS) * DAY_SECONDS - 1)
    pairs = sorted({snapshot.pair_id for snapshot in snapshots})

    raw_day_datas = await exchange.get_pair_day_datas(pairs, effective_start)
    pair_day_datas = [PairDayData.from_subgraph(raw) for raw in raw_day_datas]
    logger.info(f"Valuing {len(pairs)} pairs with {len(pair_day_datas)} day data records")

    return build_liquidity_history(snapshots, pair_day_datas, start_timestamp, now)
