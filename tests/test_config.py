from __future__ import annotations

from pathlib import Path

import pytest

from vabot.config import (
    RiskPolicy,
    TradingConfig,
    binance_api_url,
    binance_data_url,
    get_credentials,
    load_env,
    load_trading_config,
    notification_webhook_url,
    request_timeout_s,
    risk_state_path,
)
from vabot.errors import ConfigMissing

CREDENTIAL_VARS = ("BINANCE_API_KEY", "BINANCE_SECRET_KEY", "SUPABASE_URL", "SUPABASE_KEY")
TRADING_VARS = (
    "TRADING_SYMBOL",
    "TRADING_BASE_ASSET",
    "TRADING_QUOTE_ASSET",
    "TRADE_AMOUNT",
    "ORDER_TYPE",
    "KLINE_INTERVAL",
    "STOP_LOSS_PCT",
    "TAKE_PROFIT_PCT",
    "MAX_DAILY_LOSS_PCT",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in CREDENTIAL_VARS + TRADING_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    config = load_trading_config()

    assert config == TradingConfig()
    assert config.symbol == "BTCUSDT"
    assert config.trade_amount == 0.0002
    assert config.order_type == "MARKET"
    assert config.risk_management == RiskPolicy(2.0, 3.0, 5.0)


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRADING_SYMBOL", "ethusdt")
    monkeypatch.setenv("TRADE_AMOUNT", "0.01")
    monkeypatch.setenv("STOP_LOSS_PCT", "1.5")
    monkeypatch.setenv("MAX_DAILY_LOSS_PCT", "250")

    config = load_trading_config()

    assert config.symbol == "ETHUSDT"
    assert config.trade_amount == 0.01
    assert config.risk_management.stop_loss_percentage == 1.5
    assert config.risk_management.take_profit_percentage == 3.0
    assert config.risk_management.max_daily_loss_percentage == 250.0


@pytest.mark.parametrize(("name", "value"), [("TRADE_AMOUNT", "abc"), ("TRADE_AMOUNT", "0"), ("STOP_LOSS_PCT", "-1")])
def test_invalid_numbers_are_rejected(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError):
        load_trading_config()


def test_missing_credential_is_fatal(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BINANCE_API_KEY", "k")
    monkeypatch.setenv("BINANCE_SECRET_KEY", "s")
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")

    with pytest.raises(ConfigMissing) as excinfo:
        get_credentials()

    assert excinfo.value.name == "SUPABASE_KEY"


def test_credentials_loaded_from_dotenv(tmp_path: Path, isolated_env: dict) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text(
        "BINANCE_API_KEY=key\n"
        "BINANCE_SECRET_KEY=secret\n"
        "SUPABASE_URL=https://example.supabase.co/\n"
        "SUPABASE_KEY=sb\n",
        encoding="utf-8",
    )

    load_env(env_file)
    credentials = get_credentials()

    assert credentials.binance_api_secret == "secret"
    assert credentials.supabase_url == "https://example.supabase.co"
    assert "secret" not in repr(credentials)


def test_endpoint_settings_follow_a_dotenv_loaded_after_import(tmp_path: Path, isolated_env: dict) -> None:
    for name in ("BINANCE_API_URL", "BINANCE_DATA_URL", "REQUEST_TIMEOUT_S", "RISK_STATE_PATH", "NOTIFICATION_WEBHOOK_URL"):
        isolated_env.pop(name, None)
    assert binance_api_url() == "https://api.binance.com"
    assert request_timeout_s() == 10.0
    assert notification_webhook_url() is None

    env_file = tmp_path / ".env"
    env_file.write_text(
        "BINANCE_API_URL=https://testnet.binance.vision/\n"
        "BINANCE_DATA_URL=https://data.binance.test\n"
        "REQUEST_TIMEOUT_S=2.5\n"
        f"RISK_STATE_PATH={tmp_path / 'risk.json'}\n"
        "NOTIFICATION_WEBHOOK_URL=https://hooks.test/vabot\n",
        encoding="utf-8",
    )
    load_env(env_file)

    assert binance_api_url() == "https://testnet.binance.vision"
    assert binance_data_url() == "https://data.binance.test"
    assert request_timeout_s() == 2.5
    assert risk_state_path() == tmp_path / "risk.json"
    assert notification_webhook_url() == "https://hooks.test/vabot"


@pytest.mark.parametrize("value", ["abc", "0", "-3"])
def test_invalid_request_timeout_is_rejected(monkeypatch: pytest.MonkeyPatch, value: str) -> None:
    monkeypatch.setenv("REQUEST_TIMEOUT_S", value)

    with pytest.raises(ValueError):
        request_timeout_s()
