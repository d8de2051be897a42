from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from .config import TradingConfig
from .execution import BaseExecutor
from .models import Candle, ClosedPosition, Position, Side
from .risk import RiskState

logger = logging.getLogger(__name__)


def generate_signal(close_price: float, thresholds: Mapping[str, float]) -> Optional[Side]:
    vah = thresholds.get("vah")
    val = thresholds.get("val")
    if vah is None or val is None:
        return None
    if close_price > vah:
        return Side.BUY
    if close_price < val:
        return Side.SELL
    return None


@dataclass
class Decision:
    closed: List[ClosedPosition] = field(default_factory=list)
    signal: Optional[Side] = None
    position: Optional[Position] = None


class SignalEngine:
    """Exit checks, VAH/VAL entry signal and daily-loss gate for one candle.

    ``DailyLossExceeded`` and ``OrderFailed`` propagate to the caller; the
    partially filled ``Decision`` is available as ``last_decision``.
    """

    def __init__(
        self, config: TradingConfig, risk_state: RiskState, executor: BaseExecutor
    ) -> None:
        self.config = config
        self.risk_state = risk_state
        self.executor = executor
        self.last_decision: Optional[Decision] = None

    def process(self, candle: Candle, thresholds: Mapping[str, float]) -> Decision:
        policy = self.config.risk_management
        decision = Decision()
        self.last_decision = decision

        decision.closed = self.risk_state.close_triggered(candle.close, policy)

        decision.signal = generate_signal(candle.close, thresholds)
        if decision.signal is None:
            logger.info(
                "Sin señal: close=%s dentro de [VAL=%s, VAH=%s].",
                candle.close,
                thresholds.get("val"),
                thresholds.get("vah"),
            )
            return decision

        if decision.signal is Side.BUY:
            logger.info("Trade signal: Buy - Close price above VAH.")
        else:
            logger.info("Trade signal: Sell - Close price below VAL.")

        trade_value = self.config.trade_amount * candle.close
        exposure = self.risk_state.reserve(trade_value, policy)
        logger.info(
            "Riesgo aceptado: valor=%s exposición diaria=%s/%s",
            abs(trade_value),
            exposure,
            policy.max_daily_loss_percentage,
        )

        decision.position = self.executor.place_order(decision.signal, candle.close)
        return decision
