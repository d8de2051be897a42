from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from numbers import Real
from typing import Any, Dict, Optional

import requests

from .config import THRESHOLDS_TABLE, binance_data_url, request_timeout_s
from .errors import ProviderUnavailable
from .models import Candle
from .rest_client import BinanceRestClient

logger = logging.getLogger(__name__)

THRESHOLD_KEYS = ("vah", "val")


def supabase_headers(api_key: str) -> Dict[str, str]:
    return {
        "apikey": api_key,
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }


class IKlineGate(ABC):
    @abstractmethod
    def get_kline(self, start_ms: int, end_ms: int) -> Optional[Candle]:
        raise NotImplementedError


@dataclass
class BinanceKlinesProvider(IKlineGate):
    symbol: str = "BTCUSDT"
    interval: str = "4h"
    base_url: Optional[str] = None
    rest_client: Optional[BinanceRestClient] = None

    def __post_init__(self) -> None:
        if self.base_url is None:
            self.base_url = binance_data_url()
        if self.rest_client is None:
            self.rest_client = BinanceRestClient(base_url=self.base_url)

    def get_kline(self, start_ms: int, end_ms: int) -> Optional[Candle]:
        if start_ms > end_ms:
            raise ValueError("start_ms debe ser menor o igual que end_ms")
        params = {
            "symbol": self.symbol,
            "interval": self.interval,
            "startTime": start_ms,
            "endTime": end_ms,
        }
        try:
            rows = self.rest_client.get_json("/api/v3/klines", params=params)
        except (requests.RequestException, ValueError) as exc:
            raise ProviderUnavailable(f"No se pudo obtener la kline: {exc}") from exc

        if not isinstance(rows, list):
            raise ProviderUnavailable(f"Respuesta de klines inesperada: {rows!r}")
        if not rows:
            return None
        try:
            candle = Candle.from_kline_row(rows[0])
        except (TypeError, ValueError) as exc:
            raise ProviderUnavailable(f"Kline malformada: {rows[0]!r}") from exc
        logger.info(
            "Kline %s %s: open=%s high=%s low=%s close=%s volume=%s",
            self.symbol,
            candle.open_time.isoformat(),
            candle.open,
            candle.high,
            candle.low,
            candle.close,
            candle.volume,
        )
        return candle


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, Real):
        return None
    return float(value)


def fold_thresholds(rows: list) -> Dict[str, float]:
    """Reduce threshold rows to ``{"vah": ..., "val": ...}``; the last valid row wins."""
    thresholds: Dict[str, float] = {}
    valid_rows = 0
    for row in rows:
        if not isinstance(row, dict):
            continue
        vah = _as_number(row.get("vah"))
        val = _as_number(row.get("val"))
        if vah is None or val is None:
            continue
        valid_rows += 1
        thresholds["vah"] = vah
        thresholds["val"] = val
    if valid_rows > 1:
        logger.warning(
            "Se recibieron %s filas VAH/VAL; se usa la última (vah=%s, val=%s).",
            valid_rows,
            thresholds["vah"],
            thresholds["val"],
        )
    return thresholds


@dataclass
class ValueAreaProvider:
    supabase_url: str
    api_key: str
    table: str = THRESHOLDS_TABLE
    session: requests.Session = field(default_factory=requests.Session)
    request_timeout: Optional[float] = None

    def fetch_thresholds(self) -> Dict[str, float]:
        url = f"{self.supabase_url.rstrip('/')}/rest/v1/{self.table}"
        try:
            response = self.session.get(
                url,
                params={"select": ",".join(THRESHOLD_KEYS)},
                headers=supabase_headers(self.api_key),
                timeout=self.request_timeout or request_timeout_s(),
            )
        except requests.RequestException as exc:
            raise ProviderUnavailable(f"No se pudo consultar VAH/VAL: {exc}") from exc
        if response.status_code >= 400:
            raise ProviderUnavailable(
                f"Failed to fetch data: {response.status_code} {response.text}"
            )
        try:
            rows = response.json()
        except ValueError as exc:
            raise ProviderUnavailable("Respuesta VAH/VAL no es JSON válido.") from exc
        if not isinstance(rows, list):
            raise ProviderUnavailable(f"Respuesta VAH/VAL inesperada: {rows!r}")

        thresholds = fold_thresholds(rows)
        if thresholds:
            logger.info("VAH: %s, VAL: %s", thresholds["vah"], thresholds["val"])
        else:
            logger.warning("La tabla %s no contiene valores VAH/VAL válidos.", self.table)
        return thresholds
