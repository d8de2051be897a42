from __future__ import annotations

from typing import Any, Dict, Optional

import requests

from .config import request_timeout_s


class BinanceRestClient:
    """Single-shot REST access to Binance.

    Every request is sent exactly once with a bounded timeout; callers decide
    how to treat failures.
    """

    def __init__(
        self,
        base_url: str = "https://api.binance.com",
        session: Optional[requests.Session] = None,
        request_timeout: Optional[float] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.request_timeout = request_timeout or request_timeout_s()

    def request(
        self,
        method: str,
        endpoint: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        query: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        endpoint_path = endpoint if endpoint.startswith("/") else f"/{endpoint}"
        url = f"{self.base_url}{endpoint_path}"
        if query:
            # Signed requests must go out byte-for-byte as signed.
            url = f"{url}?{query}"
        return self.session.request(
            method,
            url,
            params=params,
            headers=headers,
            timeout=self.request_timeout,
        )

    def get_json(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = self.request("GET", endpoint, params=params)
        if response.status_code >= 400:
            raise requests.HTTPError(
                f"HTTP {response.status_code}: {response.text}",
                response=response,
            )
        return response.json()
