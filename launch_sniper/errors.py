from __future__ import annotations


class SniperError(Exception):
    pass


class ConfigError(SniperError):
    """Startup configuration is unusable; the poll loop must not start."""


class TransientFetchError(SniperError):
    """A remote call failed or timed out. The caller retries the same work."""

    def __init__(self, method: str, reason: str):
        super().__init__(f"{method}: {reason}")
        self.method = method
        self.reason = reason


class QuoteFailure(SniperError):
    pass


class NoLiquidity(QuoteFailure):
    pass


class QuoteRemoteError(QuoteFailure):
    pass


class UnsupportedPool(QuoteFailure):
    pass
