from __future__ import annotations

from typing import Optional


class VabotError(Exception):
    """Base class for every error raised by vabot."""


class ConfigMissing(VabotError):
    def __init__(self, name: str) -> None:
        super().__init__(f"{name} no está definido en el entorno ni en .env")
        self.name = name


class ProviderUnavailable(VabotError):
    """Market data or threshold source could not be queried."""


DataUnavailable = ProviderUnavailable


class DailyLossExceeded(VabotError):
    def __init__(self, current: float, requested: float, limit: float) -> None:
        super().__init__(
            f"Límite de pérdida diaria excedido: {current} + {requested} > {limit}"
        )
        self.current = current
        self.requested = requested
        self.limit = limit


class OrderFailed(VabotError):
    def __init__(
        self,
        detail: str,
        *,
        status_code: Optional[int] = None,
        ambiguous: bool = False,
    ) -> None:
        super().__init__(f"Trade failed: {detail}")
        self.detail = detail
        self.status_code = status_code
        # True when the request may have reached the exchange.
        self.ambiguous = ambiguous


class PersistenceFailed(VabotError):
    pass


class RiskStateCorrupt(VabotError):
    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"Archivo de estado de riesgo ilegible {path}: {detail}")
        self.path = path
        self.detail = detail


__all__ = [
    "ConfigMissing",
    "DailyLossExceeded",
    "DataUnavailable",
    "OrderFailed",
    "PersistenceFailed",
    "ProviderUnavailable",
    "RiskStateCorrupt",
    "VabotError",
]
