"""
Response builders for consistent error responses
"""

from fastapi.responses import JSONResponse

from .. import config
from ..errors import LogVaultError
from ..pipeline import BatchResult

RETRY_AFTER_SECONDS = 5

ERROR_STATUS = {
    "unknown_tenant": 404,
    "not_found": 404,
    "confirmation_mismatch": 403,
    "route_locked": 409,
    "lifecycle_busy": 409,
    "inactive_plan": 422,
    "unknown_region": 422,
    "unknown_tier": 422,
    "invalid_timestamp": 422,
    "invalid_event": 422,
    "no_bucket_available": 422,
    "partial_batch_failure": 422,
    "storage_unavailable": 503,
    "storage_rejected": 502,
}


def status_for(exc: LogVaultError) -> int:
    return ERROR_STATUS.get(exc.code, 500)


def build_error_response(exc: LogVaultError) -> JSONResponse:
    """Map an engine error to its HTTP status and ``{"error", "detail"}`` body"""
    headers = {"Retry-After": str(RETRY_AFTER_SECONDS)} if exc.retryable else None
    return JSONResponse(status_code=status_for(exc), content=exc.to_dict(), headers=headers)


def build_size_limit_response(content_encoding: str, actual_bytes: int) -> JSONResponse:
    """Build 413 Payload Too Large response for size limit exceeded"""
    return JSONResponse(
        status_code=413,
        content={
            "error": "batch_too_large",
            "limit_bytes": config.MAX_COMPRESSED_SIZE_BYTES,
            "content_encoding": content_encoding,
            "actual_bytes": actual_bytes
        }
    )


def build_count_limit_response(observed: int) -> JSONResponse:
    """Build 422 Unprocessable Entity response for record count exceeded"""
    return JSONResponse(
        status_code=422,
        content={
            "error": "too_many_records",
            "limit": config.MAX_RECORDS_PER_BATCH,
            "observed": observed
        }
    )


def build_bad_request_response(error: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": error, "detail": detail})


def build_ingest_response(batch: BatchResult) -> JSONResponse:
    """Per-event results for an ingest request.

    202 when every event was accepted, 207 when some were rejected. When all
    were rejected the status is 503 if every rejection is retryable and 422
    otherwise.
    """
    content = {
        "accepted": batch.accepted,
        "rejected": batch.rejected,
        "results": [r.to_dict() for r in batch.results],
    }
    if not batch.partial_failure:
        return JSONResponse(status_code=202, content=content)
    if batch.accepted:
        return JSONResponse(status_code=207, content=content)
    if all(r.retryable for r in batch.results):
        return JSONResponse(status_code=503, content=content,
                            headers={"Retry-After": str(RETRY_AFTER_SECONDS)})
    return JSONResponse(status_code=422, content=content)
