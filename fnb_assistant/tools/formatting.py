"""
Result shaping shared by all tools: currency strings, percentages,
period arithmetic and row caps. Tools return these pre-formatted so the
model never has to do arithmetic or formatting itself.
"""

from datetime import date, timedelta
from typing import Iterable, Optional, Sequence, TypeVar

T = TypeVar("T")

NOT_AVAILABLE = "N/A"


def format_number(value: Optional[float]) -> str:
    """Greek grouping: 1234.5 → '1.234,50'."""
    text = f"{float(value or 0):,.2f}"
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def format_eur(value: Optional[float]) -> str:
    return f"€{format_number(value)}"


def format_pct(value: float) -> str:
    return f"{value:.1f}%"


def pct_change(current: float, previous: float, signed_base: bool = False) -> str:
    """
    Percentage change from previous to current.

    With signed_base the divisor is |previous| and any non-zero previous is
    usable (profit can be negative); otherwise previous must be positive.
    A zero base yields "N/A", never Infinity.
    """
    if signed_base:
        if previous == 0:
            return NOT_AVAILABLE
        return format_pct((current - previous) / abs(previous) * 100)
    if previous <= 0:
        return NOT_AVAILABLE
    return format_pct((current - previous) / previous * 100)


def margin(profit: float, revenue: float) -> str:
    if revenue <= 0:
        return NOT_AVAILABLE
    return format_pct(profit / revenue * 100)


def sum_amounts(values: Iterable[Optional[float]]) -> float:
    return sum(float(v or 0) for v in values)


# ── Dates ────────────────────────────────────────────────────────────

def first_of_month(day: date) -> date:
    return day.replace(day=1)


def previous_period(start: date, end: date) -> tuple[date, date]:
    """The range of equal length that ends the day before `start`."""
    span = (end - start).days + 1
    prev_end = start - timedelta(days=1)
    prev_start = start - timedelta(days=span)
    return prev_start, prev_end


def week_start(day: date) -> date:
    """Monday of the ISO week containing `day`."""
    return day - timedelta(days=day.weekday())


def bucket_key(day: date, group_by: str) -> str:
    if group_by == "month":
        return day.strftime("%Y-%m")
    if group_by == "week":
        return week_start(day).isoformat()
    return day.isoformat()


def iso(day: Optional[date]) -> Optional[str]:
    return day.isoformat() if day else None


# ── Row caps ─────────────────────────────────────────────────────────

def cap_limit(requested: Optional[int], default: int, maximum: int) -> int:
    if not requested or requested < 1:
        return default
    return min(requested, maximum)


def take(rows: Sequence[T], limit: int) -> tuple[list[T], bool]:
    """First `limit` rows, and whether anything was cut off."""
    return list(rows[:limit]), len(rows) > limit


def with_truncation(payload: dict, truncated: bool, shown: int, noun: str) -> dict:
    if truncated:
        payload["truncated"] = True
        payload["note"] = (
            f"Showing the first {shown} {noun} only. "
            "Narrow the filters (dates, names, status) to see the rest."
        )
    return payload
