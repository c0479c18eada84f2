"""
Typed records for subgraph data and derived series.

Raw subgraph entities stay plain dicts where they are passed through to the
presentation layer (transactions, positions). Everything the analytics
pipeline computes on is parsed into one of these dataclasses.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from lp_analytics.services.formatting import to_float


@dataclass(frozen=True)
class Block:
    """Resolved block; `timestamp` is the requested label, not the mined time"""
    timestamp: int
    number: int


@dataclass(frozen=True)
class LiquidityPositionSnapshot:
    """Point-in-time record of a user's LP token holding for one pair"""
    timestamp: int
    pair_id: str
    liquidity_token_balance: float
    liquidity_token_total_supply: float = 0.0
    reserve0: float = 0.0
    reserve1: float = 0.0
    reserve_usd: float = 0.0
    token0_price_usd: float = 0.0
    token1_price_usd: float = 0.0

    @classmethod
    def from_subgraph(cls, raw: Dict[str, Any]) -> "LiquidityPositionSnapshot":
        pair = raw.get("pair") or {}
        return cls(
            timestamp=int(raw.get("timestamp", 0)),
            pair_id=(pair.get("id") or raw.get("pairId") or "").lower(),
            liquidity_token_balance=to_float(raw.get("liquidityTokenBalance")),
            liquidity_token_total_supply=to_float(raw.get("liquidityTokenTotalSupply")),
            reserve0=to_float(raw.get("reserve0")),
            reserve1=to_float(raw.get("reserve1")),
            reserve_usd=to_float(raw.get("reserveUSD")),
            token0_price_usd=to_float(raw.get("token0PriceUSD")),
            token1_price_usd=to_float(raw.get("token1PriceUSD")),
        )


@dataclass(frozen=True)
class ShareValueSnapshot:
    timestamp: int
    share_price_usd: float
    total_supply: float
    reserve0: float
    reserve1: float
    reserve_usd: float
    token0_derived_cusd: Optional[float]
    token1_derived_cusd: Optional[float]
    roi_usd: float
    token0_price_usd: float
    token1_price_usd: float


@dataclass(frozen=True)
class PairDayData:
    pair_address: str
    date: int
    total_supply: float
    reserve_usd: float

    @classmethod
    def from_subgraph(cls, raw: Dict[str, Any]) -> "PairDayData":
        return cls(
            pair_address=(raw.get("pairAddress") or "").lower(),
            date=int(raw.get("date", 0)),
            total_supply=to_float(raw.get("totalSupply")),
            reserve_usd=to_float(raw.get("reserveUSD")),
        )


@dataclass
class PositionState:
    """Pair state as seen by one LP balance, at either end of a return window"""
    liquidity_token_balance: float
    liquidity_token_total_supply: float
    reserve0: float
    reserve1: float
    reserve_usd: float
    token0_price_usd: float
    token1_price_usd: float

    @classmethod
    def from_snapshot(cls, snapshot: LiquidityPositionSnapshot) -> "PositionState":
        return cls(
            liquidity_token_balance=snapshot.liquidity_token_balance,
            liquidity_token_total_supply=snapshot.liquidity_token_total_supply,
            reserve0=snapshot.reserve0,
            reserve1=snapshot.reserve1,
            reserve_usd=snapshot.reserve_usd,
            token0_price_usd=snapshot.token0_price_usd,
            token1_price_usd=snapshot.token1_price_usd,
        )

    @property
    def usd_value(self) -> float:
        if not self.liquidity_token_total_supply:
            return 0.0
        return self.liquidity_token_balance / self.liquidity_token_total_supply * self.reserve_usd


@dataclass(frozen=True)
class ReturnMetrics:
    hodl_return: float = 0.0
    net_return: float = 0.0
    uniswap_return: float = 0.0
    imp_loss: float = 0.0
    fees: float = 0.0


@dataclass(frozen=True)
class Principal:
    usd: float = 0.0
    amount0: float = 0.0
    amount1: float = 0.0


@dataclass(frozen=True)
class PositionReturns:
    principal: Principal = field(default_factory=Principal)
    net_return: float = 0.0
    uniswap_return: float = 0.0
    fees: float = 0.0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "principal": {
                "usd": self.principal.usd,
                "amount0": self.principal.amount0,
                "amount1": self.principal.amount1,
            },
            "net": {"return": self.net_return},
            "uniswap": {"return": self.uniswap_return},
            "fees": {"sum": self.fees},
        }


@dataclass(frozen=True)
class PairReturnPoint:
    date: int
    usd_value: float
    fees: float


@dataclass(frozen=True)
class DailyLiquidityValue:
    date: int
    value_usd: float
