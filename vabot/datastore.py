from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

import requests

from .config import KLINES_TABLE, request_timeout_s
from .data_provider import supabase_headers
from .errors import PersistenceFailed
from .models import Candle

logger = logging.getLogger(__name__)


@dataclass
class KlineStore:
    supabase_url: str
    api_key: str
    table: str = KLINES_TABLE
    session: requests.Session = field(default_factory=requests.Session)
    request_timeout: Optional[float] = None

    @property
    def url(self) -> str:
        return f"{self.supabase_url.rstrip('/')}/rest/v1/{self.table}"

    def store(self, candle: Candle) -> None:
        record = candle.to_record()
        logger.info("Insertando kline en %s: %s", self.url, record)
        try:
            response = self.session.post(
                self.url,
                json=record,
                headers=supabase_headers(self.api_key),
                timeout=self.request_timeout or request_timeout_s(),
            )
        except requests.RequestException as exc:
            raise PersistenceFailed(f"No se pudo insertar la kline: {exc}") from exc

        logger.debug("Respuesta %s: %s", response.status_code, response.text)
        if not response.ok:
            raise PersistenceFailed(f"Error: {response.status_code} - {response.text}")
        logger.info("Kline insertada correctamente.")


__all__ = ["KlineStore"]
