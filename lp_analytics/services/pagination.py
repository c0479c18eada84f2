"""
Paginated query execution against an indexer that caps result sizes.

Two shapes are supported:

- `split_query`: the caller has a list of inputs (timestamps, blocks) larger
  than one request may carry. The list is sliced into windows, one aliased
  query is built per window and the returned mappings are merged.
- `paginate_by_skip`: a list query whose results are paged with `first`/`skip`
  until a short page signals the end.

Any request failure propagates: no partial accumulation is ever returned.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, List, Sequence

logger = logging.getLogger(__name__)


async def split_query(
    query: Callable[..., str],
    client,
    variables: Sequence[Any],
    items: Sequence[Any],
    page_size: int = 100,
) -> Dict[str, Any]:
    """
    Issue `query(*variables, window)` for consecutive windows of `items`.

    Args:
        query: Builder returning a GraphQL document for one window of items
        client: Object with an async `query(document)` returning the data mapping
        variables: Leading positional arguments passed to the builder
        items: Inputs to slice; each produces at most one entry in the result
        page_size: Maximum items per request

    Returns:
        All page results merged into one mapping
    """
    if page_size <= 0:
        raise ValueError("page_size must be positive")

    fetched_data: Dict[str, Any] = {}
    skip = 0
    requests = 0

    while skip < len(items):
        end = min(skip + page_size, len(items))
        sliced = list(items[skip:end])
        result = await client.query(query(*variables, sliced))
        requests += 1
        fetched_data.update(result or {})

        # a short page means the source has nothing more to give
        if len(result or {}) < page_size or end >= len(items):
            break
        skip = end

    logger.debug(f"split_query merged {len(fetched_data)} entries in {requests} requests")
    return fetched_data


async def paginate_by_skip(
    fetch_page: Callable[[int, int], Awaitable[List[Any]]],
    page_size: int = 1000,
) -> List[Any]:
    """Collect `fetch_page(skip, first)` pages until one comes back short"""
    if page_size <= 0:
        raise ValueError("page_size must be positive")

    results: List[Any] = []
    skip = 0
    while True:
        page = await fetch_page(skip, page_size)
        results.extend(page)
        if len(page) < page_size:
            return results
        skip += page_size
