from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigMissing

ENV_PATH = Path(".env")
KLINES_TABLE = "klines"
THRESHOLDS_TABLE = "Monthly_values"

REQUIRED_CREDENTIALS = (
    "BINANCE_API_KEY",
    "BINANCE_SECRET_KEY",
    "SUPABASE_URL",
    "SUPABASE_KEY",
)


@dataclass(frozen=True)
class RiskPolicy:
    stop_loss_percentage: float = 2.0
    take_profit_percentage: float = 3.0
    max_daily_loss_percentage: float = 5.0

    def __post_init__(self) -> None:
        for name in (
            "stop_loss_percentage",
            "take_profit_percentage",
            "max_daily_loss_percentage",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} no puede ser negativo.")


@dataclass(frozen=True)
class TradingConfig:
    symbol: str = "BTCUSDT"
    base_asset: str = "BTC"
    quote_asset: str = "USDT"
    trade_amount: float = 0.0002
    order_type: str = "MARKET"
    interval: str = "4h"
    risk_management: RiskPolicy = field(default_factory=RiskPolicy)

    def __post_init__(self) -> None:
        if self.trade_amount <= 0:
            raise ValueError("trade_amount debe ser mayor que cero.")


@dataclass(frozen=True)
class Credentials:
    binance_api_key: str
    binance_api_secret: str
    supabase_url: str
    supabase_key: str

    def __repr__(self) -> str:
        return f"Credentials(supabase_url={self.supabase_url!r}, secrets=***)"


def load_env(env_path: Path | str = ENV_PATH) -> None:
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(dotenv_path=env_file)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} inválido: {raw!r}") from exc


def load_trading_config() -> TradingConfig:
    defaults = TradingConfig()
    policy = RiskPolicy(
        stop_loss_percentage=_env_float(
            "STOP_LOSS_PCT", defaults.risk_management.stop_loss_percentage
        ),
        take_profit_percentage=_env_float(
            "TAKE_PROFIT_PCT", defaults.risk_management.take_profit_percentage
        ),
        max_daily_loss_percentage=_env_float(
            "MAX_DAILY_LOSS_PCT", defaults.risk_management.max_daily_loss_percentage
        ),
    )
    return TradingConfig(
        symbol=os.environ.get("TRADING_SYMBOL", defaults.symbol).upper(),
        base_asset=os.environ.get("TRADING_BASE_ASSET", defaults.base_asset).upper(),
        quote_asset=os.environ.get("TRADING_QUOTE_ASSET", defaults.quote_asset).upper(),
        trade_amount=_env_float("TRADE_AMOUNT", defaults.trade_amount),
        order_type=os.environ.get("ORDER_TYPE", defaults.order_type).upper(),
        interval=os.environ.get("KLINE_INTERVAL", defaults.interval),
        risk_management=policy,
    )


def _require(name: str) -> str:
    value: Optional[str] = os.environ.get(name)
    if not value:
        raise ConfigMissing(name)
    return value


def get_credentials() -> Credentials:
    values = {name: _require(name) for name in REQUIRED_CREDENTIALS}
    return Credentials(
        binance_api_key=values["BINANCE_API_KEY"],
        binance_api_secret=values["BINANCE_SECRET_KEY"],
        supabase_url=values["SUPABASE_URL"].rstrip("/"),
        supabase_key=values["SUPABASE_KEY"],
    )


def dry_run_enabled() -> bool:
    return os.getenv("DRY_RUN", "false").lower() in {"1", "true", "yes"}


# Read on every call so values loaded from .env by load_env() are seen.
def binance_api_url() -> str:
    return os.getenv("BINANCE_API_URL", "https://api.binance.com").rstrip("/")


def binance_data_url() -> str:
    return os.getenv("BINANCE_DATA_URL", "https://data-api.binance.vision").rstrip("/")


def request_timeout_s() -> float:
    timeout = _env_float("REQUEST_TIMEOUT_S", 10.0)
    if timeout <= 0:
        raise ValueError("REQUEST_TIMEOUT_S debe ser mayor que cero.")
    return timeout


def risk_state_path() -> Path:
    return Path(os.getenv("RISK_STATE_PATH", "./state/risk_state.json"))


def notification_webhook_url() -> Optional[str]:
    return os.getenv("NOTIFICATION_WEBHOOK_URL") or None


__all__ = [
    "Credentials",
    "ENV_PATH",
    "KLINES_TABLE",
    "RiskPolicy",
    "THRESHOLDS_TABLE",
    "TradingConfig",
    "binance_api_url",
    "binance_data_url",
    "dry_run_enabled",
    "notification_webhook_url",
    "request_timeout_s",
    "risk_state_path",
    "get_credentials",
    "load_env",
    "load_trading_config",
]
