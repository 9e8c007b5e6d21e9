from __future__ import annotations


class PriceServiceError(Exception):
    """Base class for every error raised by the price service."""


class UpstreamUnavailable(PriceServiceError):
    """An upstream CryptoCompare call failed (network, non-2xx, malformed body)."""


class NoCoinsHandled(PriceServiceError):
    """None of the requested symbols on one side of the pair is eligible."""

    message = "coin not handled"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class StaleDataUnavailable(PriceServiceError):
    """The fallback path has no usable snapshot to derive rates from."""


class StartupFailure(PriceServiceError):
    """The process could not initialise a required dependency."""
