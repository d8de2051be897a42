from __future__ import annotations

import hashlib
import hmac
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

import requests

from .config import TradingConfig, binance_api_url
from .errors import OrderFailed
from .models import Position, Side, to_ms
from .rest_client import BinanceRestClient
from .risk import Clock, RiskState

logger = logging.getLogger(__name__)

ORDER_ENDPOINT = "/api/v3/order"
API_KEY_HEADER = "X-MBX-APIKEY"


def format_quantity(quantity: float) -> str:
    """Plain decimal rendering, never scientific notation (``2e-05`` -> ``0.00002``)."""
    return format(Decimal(str(quantity)).normalize(), "f")


def build_query_string(
    symbol: str,
    side: Side,
    order_type: str,
    quantity: float,
    timestamp_ms: int,
) -> str:
    return (
        f"symbol={symbol}&side={Side(side).value}&type={order_type}"
        f"&quantity={format_quantity(quantity)}&timestamp={timestamp_ms}"
    )


def sign_query(secret: str, query: str) -> str:
    return hmac.new(
        secret.encode("utf-8"), query.encode("utf-8"), hashlib.sha256
    ).hexdigest()


class BaseExecutor(ABC):
    def __init__(
        self,
        config: TradingConfig,
        risk_state: RiskState,
        *,
        api_key: str,
        api_secret: str,
        clock: Optional[Clock] = None,
    ) -> None:
        self.config = config
        self.risk_state = risk_state
        self.api_key = api_key
        self.api_secret = api_secret
        self.clock = clock or risk_state.clock

    def signed_query(self, side: Side) -> str:
        query = build_query_string(
            self.config.symbol,
            side,
            self.config.order_type,
            self.config.trade_amount,
            to_ms(self.clock()),
        )
        return f"{query}&signature={sign_query(self.api_secret, query)}"

    def _record_position(self, side: Side, price: float) -> Position:
        position = Position(
            entry_price=price,
            quantity=self.config.trade_amount,
            side=side,
            entry_time=self.clock(),
        )
        self.risk_state.add_position(position)
        return position

    @abstractmethod
    def place_order(self, side: Side, price: float) -> Position:
        raise NotImplementedError


class LiveExecutor(BaseExecutor):
    def __init__(
        self,
        config: TradingConfig,
        risk_state: RiskState,
        *,
        api_key: str,
        api_secret: str,
        rest_client: Optional[BinanceRestClient] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(
            config, risk_state, api_key=api_key, api_secret=api_secret, clock=clock
        )
        self.rest_client = rest_client or BinanceRestClient(
            base_url=binance_api_url()
        )

    def place_order(self, side: Side, price: float) -> Position:
        query = self.signed_query(side)
        try:
            response = self.rest_client.request(
                "POST",
                ORDER_ENDPOINT,
                query=query,
                headers={API_KEY_HEADER: self.api_key},
            )
        except requests.RequestException as exc:
            # No resubmission: the exchange may already have executed it.
            raise OrderFailed(
                f"estado de la orden desconocido ({exc})", ambiguous=True
            ) from exc

        if not response.ok:
            raise OrderFailed(response.text, status_code=response.status_code)

        logger.info(
            "%s trade executed: %s %s at price %s",
            side.value,
            self.config.trade_amount,
            self.config.symbol,
            price,
        )
        return self._record_position(side, price)


class PaperExecutor(BaseExecutor):
    """Signs the order like ``LiveExecutor`` but never sends it."""

    def place_order(self, side: Side, price: float) -> Position:
        query = self.signed_query(side)
        logger.info("[DRY RUN] POST %s?%s", ORDER_ENDPOINT, query.split("&signature=")[0])
        return self._record_position(side, price)


ExecutionClient = LiveExecutor
