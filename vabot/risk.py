from __future__ import annotations

import fcntl
import json
import logging
import threading
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

from .config import RiskPolicy
from .errors import DailyLossExceeded, RiskStateCorrupt
from .models import ClosedPosition, CloseReason, Position, Side

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def exit_levels(position: Position, policy: RiskPolicy) -> tuple[float, float]:
    """Return ``(stop_price, target_price)`` for *position*."""
    sl = policy.stop_loss_percentage / 100
    tp = policy.take_profit_percentage / 100
    if position.side is Side.BUY:
        return position.entry_price * (1 - sl), position.entry_price * (1 + tp)
    return position.entry_price * (1 + sl), position.entry_price * (1 - tp)


def exit_reason(
    position: Position, price: float, policy: RiskPolicy
) -> Optional[CloseReason]:
    stop_price, target_price = exit_levels(position, policy)
    if position.side is Side.BUY:
        if price <= stop_price:
            return CloseReason.STOP_LOSS
        if price >= target_price:
            return CloseReason.TAKE_PROFIT
        return None
    if price >= stop_price:
        return CloseReason.STOP_LOSS
    if price <= target_price:
        return CloseReason.TAKE_PROFIT
    return None


@contextmanager
def _locked_file(path: Path) -> Iterator[None]:
    """Hold an exclusive ``flock`` on *path* for the duration of the context."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as handle:
        try:
            fcntl.flock(handle, fcntl.LOCK_EX)
            yield
        finally:
            fcntl.flock(handle, fcntl.LOCK_UN)


def _parse_state(
    state_path: Path, raw: str
) -> Tuple[List[Position], float, Optional[date]]:
    try:
        data = json.loads(raw)
        positions = [Position.from_dict(item) for item in data.get("positions", [])]
        daily_exposure = float(data.get("daily_exposure", 0.0))
        accounting_day = data.get("accounting_day")
        day = date.fromisoformat(accounting_day) if accounting_day else None
    except (ValueError, KeyError, TypeError, AttributeError) as exc:
        raise RiskStateCorrupt(str(state_path), str(exc)) from exc
    if daily_exposure < 0:
        raise RiskStateCorrupt(str(state_path), "daily_exposure negativo")
    return positions, daily_exposure, day


class RiskState:
    """Open positions and the gross notional accepted during the current UTC day.

    Closing a position never reduces ``daily_exposure``: the accumulator counts
    every accepted order attempt, not realised P&L.

    When bound to a state file (``path`` or :meth:`load`), every read re-loads
    the file and every mutation writes it back, both under an exclusive lock
    on ``<path>.lock``. Separate processes sharing the file therefore see each
    other's reservations. The lock is only held for the read-modify-write, never
    while an order is in flight.
    """

    def __init__(
        self,
        positions: Optional[Iterable[Position]] = None,
        daily_exposure: float = 0.0,
        accounting_day: Optional[date] = None,
        *,
        clock: Clock = utc_now,
        path: Path | str | None = None,
    ) -> None:
        if daily_exposure < 0:
            raise ValueError("daily_exposure no puede ser negativo.")
        self.clock = clock
        self.path = Path(path) if path is not None else None
        self._lock = threading.Lock()
        self._positions: List[Position] = list(positions or [])
        self._daily_exposure = float(daily_exposure)
        self._accounting_day = accounting_day or self._today()

    @property
    def positions(self) -> List[Position]:
        with self._transaction():
            return list(self._positions)

    @property
    def daily_exposure(self) -> float:
        with self._transaction():
            return self._daily_exposure

    @property
    def accounting_day(self) -> date:
        with self._transaction():
            return self._accounting_day

    def add_position(self, position: Position) -> None:
        with self._transaction(write=True):
            self._positions.append(position)

    def close_triggered(self, price: float, policy: RiskPolicy) -> List[ClosedPosition]:
        with self._transaction(write=True):
            closed: List[ClosedPosition] = []
            remaining: List[Position] = []
            for position in self._positions:
                reason = exit_reason(position, price, policy)
                if reason is None:
                    remaining.append(position)
                else:
                    closed.append(ClosedPosition(position=position, reason=reason, price=price))
            self._positions = remaining
        for item in closed:
            logger.info(
                "%s triggered for trade: side=%s entry=%s qty=%s price=%s",
                item.reason.value,
                item.position.side.value,
                item.position.entry_price,
                item.position.quantity,
                price,
            )
        return closed

    def reserve(self, trade_value: float, policy: RiskPolicy) -> float:
        """Add ``|trade_value|`` to today's exposure or raise ``DailyLossExceeded``."""
        amount = abs(trade_value)
        with self._transaction(write=True):
            current = self._daily_exposure
            if current + amount > policy.max_daily_loss_percentage:
                raise DailyLossExceeded(current, amount, policy.max_daily_loss_percentage)
            self._daily_exposure = current + amount
            return self._daily_exposure

    @contextmanager
    def _transaction(self, write: bool = False) -> Iterator[None]:
        with self._lock:
            if self.path is None:
                self._roll_day_locked()
                yield
                return
            with _locked_file(self._lock_path(self.path)):
                self._read_locked(self.path)
                self._roll_day_locked()
                yield
                if write:
                    self._write_locked(self.path)

    @staticmethod
    def _lock_path(state_path: Path) -> Path:
        return state_path.with_name(state_path.name + ".lock")

    def _read_locked(self, state_path: Path) -> None:
        if not state_path.exists():
            return
        positions, daily_exposure, day = _parse_state(
            state_path, state_path.read_text(encoding="utf-8")
        )
        self._positions = positions
        self._daily_exposure = daily_exposure
        self._accounting_day = day or self._today()

    def _write_locked(self, state_path: Path) -> None:
        state_path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(self._snapshot_locked(), indent=2)
        tmp_path = state_path.with_suffix(state_path.suffix + ".tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        tmp_path.replace(state_path)

    def _today(self) -> date:
        return self.clock().astimezone(timezone.utc).date()

    def _roll_day_locked(self) -> None:
        today = self._today()
        if today != self._accounting_day:
            if self._daily_exposure:
                logger.info(
                    "Nuevo día de contabilidad %s: exposición diaria %s reiniciada.",
                    today.isoformat(),
                    self._daily_exposure,
                )
            self._accounting_day = today
            self._daily_exposure = 0.0

    def _snapshot_locked(self) -> dict:
        return {
            "positions": [position.to_dict() for position in self._positions],
            "daily_exposure": self._daily_exposure,
            "accounting_day": self._accounting_day.isoformat(),
        }

    def to_dict(self) -> dict:
        with self._transaction():
            return self._snapshot_locked()

    def save(self, path: Path | str) -> None:
        """Overwrite *path* with the in-memory state."""
        state_path = Path(path)
        with self._lock:
            self._roll_day_locked()
            with _locked_file(self._lock_path(state_path)):
                self._write_locked(state_path)

    @classmethod
    def load(cls, path: Path | str, *, clock: Clock = utc_now) -> "RiskState":
        """Return a state bound to *path*; raises ``RiskStateCorrupt`` on an unreadable file."""
        state = cls(clock=clock, path=path)
        with state._transaction():
            pass
        return state
