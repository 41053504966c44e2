"""Typed errors raised by financial data sources."""

from __future__ import annotations


def _code_prefix(source: str) -> str:
    return "".join(ch if ch.isalnum() else "_" for ch in source.upper()).strip("_") or "SOURCE"


class SourceError(RuntimeError):
    """Base error for actionable data-source failures."""

    def __init__(self, message: str, *, source: str, code: str | None = None) -> None:
        super().__init__(message)
        self.source = source
        self.code = code or f"{_code_prefix(source)}_ERROR"


class SourceRateLimitError(SourceError):
    """Raised when a source responds with HTTP 429."""

    def __init__(self, source: str, message: str | None = None) -> None:
        super().__init__(
            message or f"{source} rate limit exceeded",
            source=source,
            code=f"{_code_prefix(source)}_429",
        )


class SourceAuthError(SourceError):
    """Raised when a source rejects the configured API key."""

    def __init__(self, source: str, message: str | None = None) -> None:
        super().__init__(
            message or f"{source} API key invalid",
            source=source,
            code=f"{_code_prefix(source)}_401",
        )


class SourceTimeoutError(SourceError):
    """Raised when a bounded operation exceeds its time budget."""

    def __init__(self, source: str, timeout_seconds: float, message: str | None = None) -> None:
        self.timeout_ms = int(round(timeout_seconds * 1000))
        super().__init__(
            message or f"{source} timed out after {self.timeout_ms}ms",
            source=source,
            code=f"{_code_prefix(source)}_TIMEOUT",
        )
