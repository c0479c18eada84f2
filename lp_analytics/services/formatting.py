"""
Number, date and percent helpers shared by the analytics pipeline and the
presentation layer.
"""
import math
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional, Tuple, Union

from eth_utils import is_address as _is_hex_address, to_checksum_address

Number = Union[str, int, float, None]

APP_URL = "https://app.ubeswap.org/#"
EXPLORER_URL = "https://explorer.celo.org"
WRAPPED_NATIVE_ADDRESS = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"


class Timeframe(str, Enum):
    WEEK = "1 week"
    MONTH = "1 month"
    THREE_MONTHS = "3 months"
    YEAR = "1 year"
    ALL_TIME = "All time"


def to_float(value: Number, default: float = 0.0) -> float:
    """Parse subgraph BigDecimal strings; None, garbage and NaN give `default`"""
    if value is None or value == "":
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(result):
        return default
    return result


def _utc_now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=23, minute=59, second=59, microsecond=0)


def subtract_months(dt: datetime, months: int) -> datetime:
    month_index = dt.year * 12 + dt.month - 1 - months
    year, month = divmod(month_index, 12)
    month += 1
    # clamp to the last valid day of the target month
    day = dt.day
    while True:
        try:
            return dt.replace(year=year, month=month, day=day)
        except ValueError:
            day -= 1


def get_timeframe(timeframe: Optional[Timeframe], now: Optional[datetime] = None) -> int:
    """Start timestamp of the chart window selected in the UI"""
    utc_end_time = _utc_now(now)
    if timeframe == Timeframe.WEEK:
        start = end_of_day(utc_end_time - timedelta(weeks=1))
    elif timeframe == Timeframe.MONTH:
        start = end_of_day(subtract_months(utc_end_time, 1))
    elif timeframe == Timeframe.ALL_TIME:
        start = end_of_day(subtract_months(utc_end_time, 12))
    else:
        start = start_of_day(subtract_months(utc_end_time, 12).replace(month=1, day=1))
    return int(start.timestamp()) - 1


def get_timestamps_for_changes(now: Optional[datetime] = None) -> Tuple[int, int, int]:
    """Timestamps one day, two days and one week back, floored to the minute"""
    current = _utc_now(now).replace(second=0, microsecond=0)
    t1 = int((current - timedelta(days=1)).timestamp())
    t2 = int((current - timedelta(days=2)).timestamp())
    t_week = int((current - timedelta(weeks=1)).timestamp())
    return t1, t2, t_week


def get_percent_change(value_now: Number, value_24_hours_ago: Number) -> float:
    """Standard percent change between two values; 0 when undefined"""
    now = to_float(value_now, default=math.nan)
    before = to_float(value_24_hours_ago, default=math.nan)
    try:
        adjusted_percent_change = (now - before) / before * 100
    except ZeroDivisionError:
        return 0
    if math.isnan(adjusted_percent_change) or math.isinf(adjusted_percent_change):
        return 0
    return adjusted_percent_change


def get_2day_percent_change(
    value_now: Number,
    value_24_hours_ago: Number = "0",
    value_48_hours_ago: Number = "0",
) -> Tuple[float, float]:
    """
    Gets the amount difference plus the % change in the change itself
    (second order change).

    Returns:
        (current_change, adjusted_percent_change)
    """
    now = to_float(value_now, default=math.nan)
    day_ago = to_float(value_24_hours_ago, default=math.nan)
    two_days_ago = to_float(value_48_hours_ago, default=math.nan)
    current_change = now - day_ago
    previous_change = day_ago - two_days_ago

    try:
        adjusted_percent_change = (current_change - previous_change) / previous_change * 100
    except ZeroDivisionError:
        return current_change, 0
    if math.isnan(adjusted_percent_change) or math.isinf(adjusted_percent_change):
        return current_change, 0
    return current_change, adjusted_percent_change


def to_k(num: Number) -> str:
    """Abbreviate large numbers: 1234567 -> 1.23m"""
    value = to_float(num)
    for threshold, suffix in ((1e12, "t"), (1e9, "b"), (1e6, "m"), (1e3, "k")):
        if abs(value) >= threshold:
            return f"{value / threshold:.2f}".rstrip("0").rstrip(".") + suffix
    return f"{value:.2f}".rstrip("0").rstrip(".")


def format_dollar_amount(num: Number, digits: int) -> str:
    value = to_float(num)
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.{digits}f}"


def formatted_num(number: Any, usd: bool = False) -> str:
    if number is None or number == "":
        return "$0" if usd else "0"
    num = to_float(number, default=math.nan)
    if math.isnan(num):
        return "$0" if usd else "0"

    if num > 500000000:
        return ("$" if usd else "") + to_k(round(num))

    if num == 0:
        return "$0" if usd else "0"

    if 0 < num < 0.0001:
        return "< $0.0001" if usd else "< 0.0001"

    if num > 1000:
        return format_dollar_amount(num, 0) if usd else f"{round(num):,}"

    if usd:
        if num < 0.1:
            return format_dollar_amount(num, 4)
        return format_dollar_amount(num, 2)

    return f"{round(num, 5):,}"


def raw_percent(percent_raw: Number) -> str:
    percent = to_float(percent_raw) * 100
    if not percent:
        return "0%"
    if 0 < percent < 1:
        return "< 1%"
    return f"{percent:.0f}%"


def formatted_percent(percent: Number) -> str:
    """Signed percent label; the sign carries the up/down colour in the UI"""
    value = to_float(percent)
    if not value:
        return "0%"
    if 0 < value < 0.0001 or -0.0001 < value < 0:
        return "< 0.0001%"

    fixed_percent = f"{value:.2f}"
    if fixed_percent in ("0.00", "-0.00"):
        return "0%"
    if value > 0:
        if value > 100:
            return f"+{value:,.0f}%"
        return f"+{fixed_percent}%"
    return f"{fixed_percent}%"


def format_time(unix: int, now: Optional[datetime] = None) -> str:
    """Relative age of a timestamp, e.g. '3 hours ago'"""
    delta = int(_utc_now(now).timestamp()) - int(unix)
    in_minutes = delta // 60
    in_hours = delta // 3600
    in_days = delta // 86400

    if in_hours >= 24:
        return f"{in_days} {'day' if in_days == 1 else 'days'} ago"
    if in_minutes >= 60:
        return f"{in_hours} {'hour' if in_hours == 1 else 'hours'} ago"
    if delta >= 60:
        return f"{in_minutes} {'minute' if in_minutes == 1 else 'minutes'} ago"
    return f"{delta} {'second' if delta == 1 else 'seconds'} ago"


def _utc(unix: int) -> datetime:
    return datetime.fromtimestamp(int(unix), tz=timezone.utc)


def to_nice_date(unix: int) -> str:
    return _utc(unix).strftime("%b %d")


def to_nice_date_year(unix: int) -> str:
    return _utc(unix).strftime("%B %d, %Y")


def to_weekly_date(unix: int) -> str:
    """Saturday-to-Friday week label containing `unix`"""
    date = _utc(unix)
    # days since the previous Saturday (Saturday itself starts the week)
    less_days = (date.weekday() + 2) % 7
    week_start = date - timedelta(days=less_days)
    week_end = week_start + timedelta(days=6)
    return f"{week_start.strftime('%b %d')} - {week_end.strftime('%b %d')}"


def is_address(value: Optional[str]):
    """Checksummed address, or False when `value` is not an address"""
    if not value or not _is_hex_address(value.lower()):
        return False
    return to_checksum_address(value.lower())


def shorten_address(address: str, chars: int = 4) -> str:
    parsed = is_address(address)
    if not parsed:
        raise ValueError(f"Invalid 'address' parameter '{address}'.")
    return f"{parsed[:chars + 2]}...{parsed[42 - chars:]}"


def _app_token(address: str) -> str:
    return "ETH" if address == WRAPPED_NATIVE_ADDRESS else address


def get_pool_link(token0_address: str, token1_address: Optional[str] = None, remove: bool = False) -> str:
    action = "remove" if remove else "add"
    second = _app_token(token1_address) if token1_address else "ETH"
    return f"{APP_URL}/{action}/{_app_token(token0_address)}/{second}"


def get_swap_link(token0_address: str, token1_address: Optional[str] = None) -> str:
    if not token1_address:
        return f"{APP_URL}/swap?inputCurrency={token0_address}"
    return (
        f"{APP_URL}/swap?inputCurrency={_app_token(token0_address)}"
        f"&outputCurrency={_app_token(token1_address)}"
    )


urls = {
    "transaction": lambda tx: f"{EXPLORER_URL}/tx/{tx}/",
    "address": lambda address: f"{EXPLORER_URL}/address/{address}/",
    "token": lambda address: f"{EXPLORER_URL}/token/{address}/",
    "block": lambda block: f"{EXPLORER_URL}/block/{block}/",
}
