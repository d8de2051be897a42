"""Resolution of the most recently closed 4h kline window."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Tuple

from .models import from_ms, to_ms

BLOCK_HOURS = 4
WINDOW_LENGTH = timedelta(hours=BLOCK_HOURS) - timedelta(milliseconds=1)


def previous_window_start(now: datetime) -> datetime:
    if now.tzinfo is None:
        raise ValueError("now debe incluir zona horaria")
    now_utc = now.astimezone(timezone.utc)
    current_start = now_utc.replace(
        hour=now_utc.hour - now_utc.hour % BLOCK_HOURS,
        minute=0,
        second=0,
        microsecond=0,
    )
    # 00:00-03:59 resolves to 20:00 of the previous day.
    return current_start - timedelta(hours=BLOCK_HOURS)


def previous_window(now: datetime) -> Tuple[int, int]:
    """Return ``(start_ms, end_ms)`` of the 4h block preceding the one containing *now*.

    Both ends are inclusive: ``end_ms = start_ms + 3h59m59.999s``.
    """
    start = previous_window_start(now)
    return to_ms(start), to_ms(start + WINDOW_LENGTH)


def _previous_month(year: int, month: int) -> Tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def is_current_or_previous_month(ts_ms: int, now: datetime) -> bool:
    stamp = from_ms(ts_ms)
    now_utc = now.astimezone(timezone.utc)
    current = (now_utc.year, now_utc.month)
    return (stamp.year, stamp.month) in {current, _previous_month(*current)}


__all__ = [
    "WINDOW_LENGTH",
    "is_current_or_previous_month",
    "previous_window",
    "previous_window_start",
]
