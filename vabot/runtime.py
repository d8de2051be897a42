from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from . import config as settings
from .config import Credentials, TradingConfig
from .data_provider import BinanceKlinesProvider, IKlineGate, ValueAreaProvider
from .datastore import KlineStore
from .errors import (
    ConfigMissing,
    DailyLossExceeded,
    OrderFailed,
    PersistenceFailed,
    ProviderUnavailable,
    RiskStateCorrupt,
)
from .execution import BaseExecutor, LiveExecutor, PaperExecutor
from .models import Candle, ClosedPosition, Position, Side, to_ms
from .notifications import send_notification
from .observability import configure_logging
from .risk import RiskState
from .strategy import SignalEngine
from .time_window import is_current_or_previous_month, previous_window

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
STATUS_NO_DATA = "no_data"
STATUS_STALE = "stale_candle"
STATUS_PROVIDER_UNAVAILABLE = "provider_unavailable"


@dataclass
class RunResult:
    status: str
    window: Tuple[int, int]
    candle: Optional[Candle] = None
    closed: List[ClosedPosition] = field(default_factory=list)
    signal: Optional[Side] = None
    position: Optional[Position] = None
    error: Optional[str] = None
    persisted: bool = False


def run_once(
    config: TradingConfig,
    credentials: Credentials,
    risk_state: RiskState,
    *,
    kline_gate: Optional[IKlineGate] = None,
    value_area: Optional[ValueAreaProvider] = None,
    sink: Optional[KlineStore] = None,
    executor: Optional[BaseExecutor] = None,
    dry_run: bool = False,
    now: Optional[datetime] = None,
) -> RunResult:
    now = now or risk_state.clock()
    kline_gate = kline_gate or BinanceKlinesProvider(
        symbol=config.symbol, interval=config.interval
    )
    value_area = value_area or ValueAreaProvider(
        credentials.supabase_url, credentials.supabase_key
    )
    sink = sink or KlineStore(credentials.supabase_url, credentials.supabase_key)
    if executor is None:
        executor_cls = PaperExecutor if dry_run else LiveExecutor
        executor = executor_cls(
            config,
            risk_state,
            api_key=credentials.binance_api_key,
            api_secret=credentials.binance_api_secret,
        )

    window = previous_window(now)
    result = RunResult(status=STATUS_COMPLETED, window=window)

    try:
        candle = kline_gate.get_kline(*window)
    except ProviderUnavailable as exc:
        logger.error("Error obteniendo la kline: %s", exc)
        result.status, result.error = STATUS_PROVIDER_UNAVAILABLE, str(exc)
        return result
    if candle is None:
        logger.info("No Kline data fetched para la ventana %s-%s.", *window)
        result.status = STATUS_NO_DATA
        return result
    result.candle = candle

    if not is_current_or_previous_month(to_ms(candle.open_time), now):
        logger.info("Skipping Kline data: Not from current or previous month.")
        result.status = STATUS_STALE
        return result

    try:
        thresholds = value_area.fetch_thresholds()
    except ProviderUnavailable as exc:
        logger.error("Error fetching VAH/VAL values: %s", exc)
        result.status, result.error = STATUS_PROVIDER_UNAVAILABLE, str(exc)
        return result

    engine = SignalEngine(config, risk_state, executor)
    try:
        engine.process(candle, thresholds)
    except DailyLossExceeded as exc:
        logger.warning("Daily loss limit would be exceeded. Trade blocked. %s", exc)
        result.error = str(exc)
        send_notification("daily_loss_exceeded", {"detail": str(exc)})
    except OrderFailed as exc:
        logger.error(
            "Orden rechazada: %s",
            exc.detail,
            extra={"status_code": exc.status_code, "ambiguous": exc.ambiguous},
        )
        result.error = str(exc)
        send_notification("order_failed", {"detail": exc.detail, "ambiguous": exc.ambiguous})
    decision = engine.last_decision
    result.closed = decision.closed
    result.signal = decision.signal
    result.position = decision.position

    for item in result.closed:
        send_notification(
            "position_closed",
            {
                "reason": item.reason.value,
                "side": item.position.side.value,
                "entry_price": item.position.entry_price,
                "price": item.price,
            },
        )
    if result.position is not None:
        send_notification("order_executed", result.position.to_dict())

    try:
        sink.store(candle)
        result.persisted = True
    except PersistenceFailed as exc:
        logger.error("Error inserting kline: %s", exc)
    return result


def main() -> int:
    settings.load_env()
    configure_logging()
    try:
        credentials = settings.get_credentials()
        config = settings.load_trading_config()
        settings.request_timeout_s()
        state_path = settings.risk_state_path()
    except (ConfigMissing, ValueError) as exc:
        logger.critical("Configuración inválida: %s", exc)
        return 1

    try:
        risk_state = RiskState.load(state_path)
    except RiskStateCorrupt as exc:
        logger.critical(
            "Estado de riesgo corrupto; revise o elimine %s: %s",
            exc.path,
            exc.detail,
            extra={"state_path": exc.path},
        )
        return 1

    # Bound to state_path: every reservation and position change is already on disk.
    result = run_once(
        config,
        credentials,
        risk_state,
        dry_run=settings.dry_run_enabled(),
    )
    logger.info(
        "Ejecución finalizada: %s",
        result.status,
        extra={"open_positions": len(risk_state.positions)},
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
