"""
Historical pool share price series built from time-travel queries.
"""
import logging
import time
from typing import List, Optional, Sequence

from lp_analytics.services import queries
from lp_analytics.services.blocks import BLOCK_WINDOW_SECONDS, get_blocks_from_timestamps
from lp_analytics.services.formatting import to_float
from lp_analytics.services.models import ShareValueSnapshot
from lp_analytics.services.pagination import split_query

logger = logging.getLogger(__name__)

DAY_SECONDS = 86400
DEFAULT_PERIODS = 7


def get_timestamp_range(timestamp_from: int, period_length: int, periods: int) -> List[int]:
    """
    Evenly spaced timestamps. `periods` periods are bounded by `periods + 1`
    timestamps, so the first and last are both included.
    """
    return [int(timestamp_from) + i * period_length for i in range(periods + 1)]


def default_timestamps(now: Optional[int] = None) -> List[int]:
    """Daily samples covering the last week, ending one day back"""
    current = int(now if now is not None else time.time())
    return get_timestamp_range(current - (DEFAULT_PERIODS + 1) * DAY_SECONDS, DAY_SECONDS, DEFAULT_PERIODS)


async def get_share_value_over_time(
    exchange_client,
    blocks_client,
    pair_address: str,
    timestamps: Optional[Sequence[int]] = None,
    blocks_page_size: int = 500,
    page_size: int = 100,
    now: Optional[int] = None,
    window_seconds: int = BLOCK_WINDOW_SECONDS,
) -> List[ShareValueSnapshot]:
    """
    Share price and reserves of a pair at each timestamp, oldest first.

    Timestamps that do not resolve to a block, or blocks at which the pair has
    no state, produce no sample. `roi_usd` is measured against the first
    sample returned, whose own ROI is therefore 1.
    """
    if timestamps is None:
        timestamps = default_timestamps(now)

    blocks = await get_blocks_from_timestamps(blocks_client, timestamps, blocks_page_size, window_seconds)
    if not blocks:
        return []

    result = await split_query(queries.share_value, exchange_client, [pair_address], blocks, page_size)

    rows = []
    for alias, data in result.items():
        if not alias.startswith("t") or not data:
            continue
        try:
            timestamp = int(alias[1:])
        except ValueError:
            continue
        rows.append((timestamp, data))
    rows.sort(key=lambda row: row[0])

    values: List[ShareValueSnapshot] = []
    for timestamp, data in rows:
        total_supply = to_float(data.get("totalSupply"))
        reserve_usd = to_float(data.get("reserveUSD"))
        share_price_usd = reserve_usd / total_supply if total_supply else 0.0

        if values:
            baseline = values[0].share_price_usd
            roi_usd = share_price_usd / baseline if baseline else 0.0
        else:
            roi_usd = 1.0

        token0 = data.get("token0") or {}
        token1 = data.get("token1") or {}
        token0_derived = token0.get("derivedCUSD")
        token1_derived = token1.get("derivedCUSD")
        values.append(ShareValueSnapshot(
            timestamp=timestamp,
            share_price_usd=share_price_usd,
            total_supply=total_supply,
            reserve0=to_float(data.get("reserve0")),
            reserve1=to_float(data.get("reserve1")),
            reserve_usd=reserve_usd,
            token0_derived_cusd=to_float(token0_derived) if token0_derived is not None else None,
            token1_derived_cusd=to_float(token1_derived) if token1_derived is not None else None,
            roi_usd=roi_usd,
            token0_price_usd=to_float(token0_derived),
            token1_price_usd=to_float(token1_derived),
        ))

    logger.debug(f"Built {len(values)} share value samples for {pair_address}")
    return values
