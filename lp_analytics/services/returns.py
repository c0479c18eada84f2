"""
Liquidity provider return calculations.

A position's history is a sequence of LP token balance snapshots. Between two
consecutive states (a "window") the LP balance is constant, so the change in
value can be split into:

- hodl return: value change of the tokens deposited at t0 had they been held
- net return: change in the USD value of the pool share
- fees: tokens gained beyond what the constant product alone would give
- impermanent loss: constant-product value minus the hodl value at t1

Summing windows from the first snapshot up to the pair's current state gives
the position's returns.
"""
import logging
import math
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from lp_analytics.services.formatting import to_float
from lp_analytics.services.models import (
    LiquidityPositionSnapshot,
    PairReturnPoint,
    PositionReturns,
    PositionState,
    ReturnMetrics,
    ShareValueSnapshot,
)

logger = logging.getLogger(__name__)

DAY_SECONDS = 86400

ShareValueFetcher = Callable[[str, Sequence[int]], Awaitable[List[ShareValueSnapshot]]]


def _ratio(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    return numerator / denominator


def _finite(value: float) -> float:
    return value if math.isfinite(value) else 0.0


def token_price_usd(token: Dict[str, Any], native_price: float) -> float:
    """USD price of a pair token, via the native asset when the token carries it"""
    if token.get("derivedCELO") is not None:
        return to_float(token.get("derivedCELO")) * native_price
    return to_float(token.get("derivedCUSD"))


def current_position_state(pair: Dict[str, Any], native_price: float, lp_token_balance: float) -> PositionState:
    """The pair as it is now, seen through `lp_token_balance` LP tokens"""
    return PositionState(
        liquidity_token_balance=lp_token_balance,
        liquidity_token_total_supply=to_float(pair.get("totalSupply")),
        reserve0=to_float(pair.get("reserve0")),
        reserve1=to_float(pair.get("reserve1")),
        reserve_usd=to_float(pair.get("reserveUSD")),
        token0_price_usd=token_price_usd(pair.get("token0") or {}, native_price),
        token1_price_usd=token_price_usd(pair.get("token1") or {}, native_price),
    )


def get_metrics_for_position_window(position_t0: PositionState, position_t1: PositionState) -> ReturnMetrics:
    """Returns earned between two states of the same LP balance"""
    # ownership at both ends uses the t0 balance; the end supply may have moved
    t0_ownership = _ratio(position_t0.liquidity_token_balance, position_t0.liquidity_token_total_supply)
    t1_ownership = _ratio(position_t0.liquidity_token_balance, position_t1.liquidity_token_total_supply)

    token0_amount_t0 = t0_ownership * position_t0.reserve0
    token1_amount_t0 = t0_ownership * position_t0.reserve1
    token0_amount_t1 = t1_ownership * position_t1.reserve0
    token1_amount_t1 = t1_ownership * position_t1.reserve1

    # amounts the t0 deposit would hold at the t1 price with no fees (k constant)
    sqrt_k_t0 = math.sqrt(max(token0_amount_t0 * token1_amount_t0, 0.0))
    price_ratio_t1 = _ratio(position_t1.token1_price_usd, position_t1.token0_price_usd)

    if position_t1.token1_price_usd and price_ratio_t1 > 0:
        token0_amount_no_fees = sqrt_k_t0 * math.sqrt(price_ratio_t1)
        token1_amount_no_fees = sqrt_k_t0 / math.sqrt(price_ratio_t1)
    else:
        token0_amount_no_fees = token1_amount_no_fees = 0.0

    no_fees_usd = (
        token0_amount_no_fees * position_t1.token0_price_usd
        + token1_amount_no_fees * position_t1.token1_price_usd
    )

    difference_fees_token0 = token0_amount_t1 - token0_amount_no_fees
    difference_fees_token1 = token1_amount_t1 - token1_amount_no_fees
    difference_fees_usd = (
        difference_fees_token0 * position_t1.token0_price_usd
        + difference_fees_token1 * position_t1.token1_price_usd
    )

    asset_value_t0 = token0_amount_t0 * position_t0.token0_price_usd + token1_amount_t0 * position_t0.token1_price_usd
    asset_value_t1 = token0_amount_t0 * position_t1.token0_price_usd + token1_amount_t0 * position_t1.token1_price_usd

    imp_loss_usd = no_fees_usd - asset_value_t1
    uniswap_return = difference_fees_usd + imp_loss_usd

    net_value_t0 = t0_ownership * position_t0.reserve_usd
    net_value_t1 = t1_ownership * position_t1.reserve_usd

    return ReturnMetrics(
        hodl_return=_finite(asset_value_t1 - asset_value_t0),
        net_return=_finite(net_value_t1 - net_value_t0),
        uniswap_return=_finite(uniswap_return),
        imp_loss=_finite(imp_loss_usd),
        fees=_finite(difference_fees_usd),
    )


def _sorted_pair_snapshots(snapshots: Sequence[LiquidityPositionSnapshot], pair_id: str) -> List[LiquidityPositionSnapshot]:
    pair_id = pair_id.lower()
    return sorted((s for s in snapshots if s.pair_id == pair_id), key=lambda s: s.timestamp)


async def get_lp_returns_on_pair(
    exchange,
    user: str,
    pair: Dict[str, Any],
    native_price: float,
    snapshots: Sequence[LiquidityPositionSnapshot],
) -> PositionReturns:
    """
    Realized plus unrealized returns of `user` on one pair.

    Each consecutive pair of snapshots is a window; the last snapshot is
    closed against the pair's current state.
    """
    principal = await exchange.get_principal_for_user_per_pair(user, pair["id"])
    pair_snapshots = _sorted_pair_snapshots(snapshots, pair["id"])
    if not pair_snapshots:
        return PositionReturns(principal=principal)

    current_position = current_position_state(
        pair, native_price, pair_snapshots[-1].liquidity_token_balance
    )

    net_return = uniswap_return = fees = 0.0
    for index, snapshot in enumerate(pair_snapshots):
        position_t0 = PositionState.from_snapshot(snapshot)
        if index == len(pair_snapshots) - 1:
            position_t1 = current_position
        else:
            position_t1 = PositionState.from_snapshot(pair_snapshots[index + 1])

        results = get_metrics_for_position_window(position_t0, position_t1)
        net_return += results.net_return
        uniswap_return += results.uniswap_return
        fees += results.fees

    return PositionReturns(
        principal=principal,
        net_return=net_return,
        uniswap_return=uniswap_return,
        fees=fees,
    )


async def get_historical_pair_returns(
    share_value_fetcher: ShareValueFetcher,
    start_timestamp: int,
    current_pair_data: Dict[str, Any],
    pair_snapshots: Sequence[LiquidityPositionSnapshot],
    native_price: float,
    now: Optional[int] = None,
) -> List[PairReturnPoint]:
    """
    Daily USD value and cumulative fees of a position on one pair.

    Days run from the later of `start_timestamp` and the first snapshot up to,
    but excluding, today. Each day is closed against the pair's share value at
    the next day boundary, or the pair's current state when that sample is
    missing.
    """
    if not current_pair_data or not current_pair_data.get("id") or not pair_snapshots:
        return []

    pair_id = current_pair_data["id"].lower()
    sorted_snapshots = _sorted_pair_snapshots(pair_snapshots, pair_id)
    if not sorted_snapshots:
        return []

    current_time = int(now if now is not None else time.time())
    day_index = int(start_timestamp) // DAY_SECONDS
    if sorted_snapshots[0].timestamp > start_timestamp:
        day_index = sorted_snapshots[0].timestamp // DAY_SECONDS
    current_day_index = current_time // DAY_SECONDS

    day_timestamps = [day * DAY_SECONDS for day in range(day_index, current_day_index)]
    if not day_timestamps:
        return []

    share_values = await share_value_fetcher(pair_id, day_timestamps)
    share_values_by_timestamp = {share.timestamp: share for share in share_values}

    position_t0 = PositionState.from_snapshot(sorted_snapshots[0])
    formatted_history: List[PairReturnPoint] = []
    net_fees = 0.0
    cursor = 0

    for day_timestamp in day_timestamps:
        timestamp_ceiling = day_timestamp + DAY_SECONDS

        # every balance change during the day closes a window
        while cursor < len(sorted_snapshots) and sorted_snapshots[cursor].timestamp < timestamp_ceiling:
            position_t1 = PositionState.from_snapshot(sorted_snapshots[cursor])
            net_fees += get_metrics_for_position_window(position_t0, position_t1).fees
            position_t0 = position_t1
            cursor += 1

        # the end of the day is a hypothetical position at the same balance
        share = share_values_by_timestamp.get(timestamp_ceiling)
        if share is not None:
            position_t1 = PositionState(
                liquidity_token_balance=position_t0.liquidity_token_balance,
                liquidity_token_total_supply=share.total_supply,
                reserve0=share.reserve0,
                reserve1=share.reserve1,
                reserve_usd=share.reserve_usd,
                token0_price_usd=share.token0_price_usd,
                token1_price_usd=share.token1_price_usd,
            )
        else:
            position_t1 = current_position_state(
                current_pair_data, native_price, position_t0.liquidity_token_balance
            )

        local_returns = get_metrics_for_position_window(position_t0, position_t1)
        formatted_history.append(PairReturnPoint(
            date=day_timestamp,
            usd_value=position_t1.usd_value,
            fees=net_fees + local_returns.fees,
        ))

    return formatted_history
