from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Sequence

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def from_ms(value: int) -> datetime:
    return EPOCH + timedelta(milliseconds=int(value))


def to_ms(value: datetime) -> int:
    return (value.astimezone(timezone.utc) - EPOCH) // timedelta(milliseconds=1)


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class CloseReason(str, Enum):
    STOP_LOSS = "STOP_LOSS"
    TAKE_PROFIT = "TAKE_PROFIT"


@dataclass(frozen=True)
class Candle:
    open_time: datetime
    close_time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float
    quote_asset_volume: float

    @classmethod
    def from_kline_row(cls, row: Sequence[Any]) -> "Candle":
        """Parse one ``/api/v3/klines`` row.

        Layout: ``[open_time_ms, open, high, low, close, volume,
        close_time_ms, quote_asset_volume, ...]`` with prices and volumes
        encoded as decimal strings.
        """
        if len(row) < 8:
            raise ValueError(f"Fila de kline incompleta: {len(row)} campos")
        return cls(
            open_time=from_ms(row[0]),
            close_time=from_ms(row[6]),
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            volume=float(row[5]),
            quote_asset_volume=float(row[7]),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "klines_open_time": self.open_time.isoformat(timespec="milliseconds"),
            "open_price": self.open,
            "high_price": self.high,
            "low_price": self.low,
            "close_price": self.close,
            "volume": self.volume,
            "quote_asset_volume": self.quote_asset_volume,
            "klines_close_time": self.close_time.isoformat(timespec="milliseconds"),
        }

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "Candle":
        return cls(
            open_time=datetime.fromisoformat(data["klines_open_time"]),
            close_time=datetime.fromisoformat(data["klines_close_time"]),
            open=float(data["open_price"]),
            high=float(data["high_price"]),
            low=float(data["low_price"]),
            close=float(data["close_price"]),
            volume=float(data["volume"]),
            quote_asset_volume=float(data["quote_asset_volume"]),
        )


@dataclass
class Position:
    entry_price: float
    quantity: float
    side: Side
    entry_time: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_price": self.entry_price,
            "quantity": self.quantity,
            "side": self.side.value,
            "entry_time": self.entry_time.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        return cls(
            entry_price=float(data["entry_price"]),
            quantity=float(data["quantity"]),
            side=Side(data["side"]),
            entry_time=datetime.fromisoformat(data["entry_time"]),
        )


@dataclass(frozen=True)
class ClosedPosition:
    position: Position
    reason: CloseReason
    price: float
