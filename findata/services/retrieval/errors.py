"""Error classes for the retrieval pipeline's storage layer."""

from __future__ import annotations


class CacheStorageError(RuntimeError):
    """Raised when the cache backend fails to read or write an entry."""

    def __init__(self, message: str, code: str = "CACHE_STORAGE_ERROR") -> None:
        super().__init__(message)
        self.code = code
