from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any, Optional

import pytest
import requests

from vabot.config import Credentials


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: Optional[str] = None) -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload


class FakeSession:
    """Records every call and replies with queued responses or exceptions."""

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.calls: list[dict] = []

    def _reply(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        reply = self.responses.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        return self._reply(method, url, **kwargs)

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._reply("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._reply("POST", url, **kwargs)


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


KLINE_ROW = [
    1715313600000,
    "61234.56000000",
    "61890.12000000",
    "60987.01000000",
    "61500.99000000",
    "1234.56789000",
    1715327999999,
    "75912345.12345678",
    84211,
    "600.1",
    "36900000.5",
    "0",
]


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(
        binance_api_key="test-api-key",
        binance_api_secret="test-secret",
        supabase_url="https://example.supabase.co",
        supabase_key="supabase-key",
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 5, 10, 9, 30, tzinfo=timezone.utc))


@pytest.fixture(autouse=True)
def _no_webhook(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NOTIFICATION_WEBHOOK_URL", raising=False)


@pytest.fixture(autouse=True)
def _no_network(monkeypatch: pytest.MonkeyPatch) -> None:
    def _blocked(*_: Any, **__: Any) -> None:
        raise AssertionError("network access in tests")

    monkeypatch.setattr(requests.Session, "request", _blocked)


@pytest.fixture
def isolated_env(monkeypatch: pytest.MonkeyPatch) -> dict:
    """Private copy of the process environment; ``load_dotenv`` writes are dropped afterwards."""
    env = os.environ.copy()
    monkeypatch.setattr(os, "environ", env)
    return env
