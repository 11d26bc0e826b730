"""
Error kinds raised by the ingestion and lifecycle engine.

Every error carries a stable ``code`` that is reported to API callers and used
as the ``reason`` label on metrics.
"""
from typing import Any, Dict, List, Optional


class LogVaultError(Exception):
    code = "internal_error"
    retryable = False

    def __init__(self, detail: str = "", **context: Any):
        super().__init__(detail or self.code)
        self.detail = detail or self.code
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "detail": self.detail}


class NotFound(LogVaultError):
    code = "not_found"


class UnknownTenant(LogVaultError):
    code = "unknown_tenant"


class InactivePlan(LogVaultError):
    code = "inactive_plan"


class UnknownRegion(LogVaultError):
    code = "unknown_region"


class UnknownTier(LogVaultError):
    code = "unknown_tier"


class InvalidTimestamp(LogVaultError):
    code = "invalid_timestamp"


class InvalidEvent(LogVaultError):
    code = "invalid_event"


class NoBucketAvailable(LogVaultError):
    code = "no_bucket_available"


class StorageUnavailable(LogVaultError):
    """Transient storage failure; the caller may retry with backoff."""
    code = "storage_unavailable"
    retryable = True


class StorageRejected(LogVaultError):
    """Permanent storage failure, e.g. a malformed document."""
    code = "storage_rejected"


class ConfirmationMismatch(LogVaultError):
    code = "confirmation_mismatch"


class RouteLocked(LogVaultError):
    code = "route_locked"


class LifecycleBusy(LogVaultError):
    code = "lifecycle_busy"
    retryable = True


class PartialBatchFailure(LogVaultError):
    code = "partial_batch_failure"

    def __init__(self, failures: List[Any], total: int):
        super().__init__(f"{len(failures)} of {total} events rejected")
        self.failures = failures
        self.total = total


def error_code(exc: Optional[BaseException]) -> str:
    if isinstance(exc, LogVaultError):
        return exc.code
    return LogVaultError.code
