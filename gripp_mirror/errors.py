"""
Error taxonomy for the Gripp mirror.

Retryable errors (network trouble, timeouts, rate limiting) are raised by the
upstream client and retried there. Row-level validation errors are collected
by the sync orchestrator. Everything else is fatal for the operation that
raised it.
"""

from typing import Optional


class MirrorError(Exception):
    """Base exception for all mirror failures."""


# =============================================================================
# Upstream
# =============================================================================


class NetworkError(MirrorError):
    """Transient transport failure talking to the upstream service."""


class UpstreamTimeoutError(NetworkError):
    """The request exceeded its timeout or the caller's deadline."""


class RateLimitError(NetworkError):
    """The upstream service asked us to slow down."""

    def __init__(self, message: str = "Rate limit exceeded", retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamError(MirrorError):
    """The upstream service returned a structured, non-retryable error."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


# =============================================================================
# Sync and store
# =============================================================================


class ValidationError(MirrorError):
    """A single record failed validation and was skipped."""

    def __init__(self, message: str, entity: Optional[str] = None, record_id: Optional[object] = None):
        super().__init__(message)
        self.entity = entity
        self.record_id = record_id


class TransactionError(MirrorError):
    """A store transaction could not be started or committed."""


class SyncFailed(MirrorError):
    """A sync saved nothing and was rolled back; prior data is intact."""

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.errors = list(errors or [])

    @property
    def error_count(self) -> int:
        return len(self.errors)


class SyncInProgressError(MirrorError):
    """A sync for the same entity type is already running."""


# =============================================================================
# Cache
# =============================================================================


class CacheWriteError(MirrorError):
    """The persistent cache tier could not be written."""


def is_retryable(exc: BaseException) -> bool:
    """
    Decide whether an upstream failure is worth another attempt.

    Args:
        exc: Exception raised by an upstream call

    Returns:
        True for network errors, timeouts and rate limiting
    """
    return isinstance(exc, NetworkError)
