"""
Timestamp to block-number resolution against the blocks subgraph.

Lookups are bounded to a short window after each timestamp to keep the
indexer query cheap; a timestamp with no block inside its window is dropped.
"""
import logging
from functools import partial
from typing import List, Optional, Sequence

from lp_analytics.services import queries
from lp_analytics.services.models import Block
from lp_analytics.services.pagination import split_query

logger = logging.getLogger(__name__)

BLOCK_WINDOW_SECONDS = 600


async def get_block_from_timestamp(blocks_client, timestamp: int, window_seconds: int = BLOCK_WINDOW_SECONDS) -> int:
    """First block mined in [timestamp, timestamp + window); 0 when there is none"""
    data = await blocks_client.query(
        queries.GET_BLOCK,
        {"timestampFrom": int(timestamp), "timestampTo": int(timestamp) + window_seconds},
    )
    blocks = data.get("blocks") or []
    if not blocks:
        return 0
    return int(blocks[0].get("number") or 0)


def _parse_alias(alias: str) -> Optional[int]:
    if not alias.startswith("t"):
        return None
    try:
        return int(alias[1:])
    except ValueError:
        return None


async def get_blocks_from_timestamps(
    blocks_client,
    timestamps: Optional[Sequence[int]],
    page_size: int = 500,
    window_seconds: int = BLOCK_WINDOW_SECONDS,
) -> List[Block]:
    """
    Resolve many timestamps to blocks in as few requests as the page size allows.

    Blocks come back in ascending block-number order, whatever the input order.
    Each Block keeps the requested timestamp as its label, not the mined time.
    """
    if not timestamps:
        return []

    unique_timestamps = list(dict.fromkeys(int(t) for t in timestamps))
    fetched_data = await split_query(
        partial(queries.get_blocks, window_seconds=window_seconds),
        blocks_client,
        [],
        unique_timestamps,
        page_size,
    )

    blocks: List[Block] = []
    for alias, rows in fetched_data.items():
        timestamp = _parse_alias(alias)
        if timestamp is None or not rows:
            continue
        number = rows[0].get("number")
        if number is None:
            continue
        blocks.append(Block(timestamp=timestamp, number=int(number)))

    dropped = len(unique_timestamps) - len(blocks)
    if dropped:
        logger.debug(f"{dropped} timestamps had no block within {window_seconds}s")

    return sorted(blocks, key=lambda block: (block.number, block.timestamp))
