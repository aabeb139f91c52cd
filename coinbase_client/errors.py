from __future__ import annotations

from typing import Optional


class CoinbaseError(Exception):
    """Base class for everything this client raises."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        # Filled in by the retry policy once the call gives up.
        self.attempts: int = 0


class ConfigError(CoinbaseError):
    pass


class AuthError(CoinbaseError):
    """Credential or signing misconfiguration. Never retried."""


class TransportError(CoinbaseError):
    """Connect failure, timeout or TLS failure. Always retryable."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class ApiError(CoinbaseError):
    """The exchange answered with a non-2xx status."""

    def __init__(
        self,
        message: str,
        status: int,
        code: Optional[str] = None,
        retry_after: Optional[float] = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.code = code
        self.retry_after = retry_after

    @property
    def raw_status(self) -> int:
        return self.status

    @property
    def rate_limited(self) -> bool:
        return self.status == 429

    @property
    def retryable(self) -> bool:
        return self.status == 429 or self.status >= 500

    def __str__(self) -> str:
        code = f" [{self.code}]" if self.code else ""
        return f"HTTP {self.status}{code}: {self.message}"


class DecodeError(CoinbaseError):
    """Response body did not have the expected shape (protocol/version mismatch)."""

    def __init__(self, message: str, body: bytes = b"", status: Optional[int] = None) -> None:
        super().__init__(message)
        self.body = body
        self.status = status

    @property
    def raw_text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def __str__(self) -> str:
        snippet = self.raw_text[:200]
        return f"{self.message} (status={self.status}, body={snippet!r})"
