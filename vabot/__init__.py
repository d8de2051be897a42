from .config import RiskPolicy, TradingConfig, get_credentials, load_env, load_trading_config
from .errors import (
    ConfigMissing,
    DailyLossExceeded,
    DataUnavailable,
    OrderFailed,
    PersistenceFailed,
    ProviderUnavailable,
    RiskStateCorrupt,
)
from .execution import BaseExecutor, ExecutionClient, LiveExecutor, PaperExecutor
from .models import Candle, ClosedPosition, CloseReason, Position, Side
from .risk import RiskState
from .strategy import SignalEngine, generate_signal

__all__ = [
    "BaseExecutor",
    "Candle",
    "CloseReason",
    "ClosedPosition",
    "ConfigMissing",
    "DailyLossExceeded",
    "DataUnavailable",
    "ExecutionClient",
    "LiveExecutor",
    "OrderFailed",
    "PaperExecutor",
    "PersistenceFailed",
    "Position",
    "ProviderUnavailable",
    "RiskPolicy",
    "RiskState",
    "RiskStateCorrupt",
    "Side",
    "SignalEngine",
    "TradingConfig",
    "generate_signal",
    "get_credentials",
    "load_env",
    "load_trading_config",
]
