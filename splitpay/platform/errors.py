from __future__ import annotations


class SplitPayError(Exception):
    status_code = 500

    def __init__(self, message: str, *, extra: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    def to_body(self) -> dict:
        return {"error": self.message, **self.extra}


class ConfigurationError(SplitPayError):
    """Required identity or credential material is absent. Raised before any network call."""

    status_code = 400


class ValidationError(SplitPayError):
    status_code = 400


class ResolutionError(SplitPayError):
    """An upstream Open Payments call failed."""

    status_code = 502


class FlowNotFoundError(SplitPayError):
    """Nonce unknown, already consumed, or expired."""

    status_code = 500


class MarketRateUnavailable(SplitPayError):
    status_code = 503
