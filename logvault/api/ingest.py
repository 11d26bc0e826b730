from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from typing import Any, List, Optional, Tuple
import gzip
import json
import logging
import zlib

from .. import config
from ..auth.deps import require_scopes
from ..logging_config import get_trace_id
from ..services.prometheus_metrics import prometheus_metrics
from .response_builders import (
    build_bad_request_response, build_count_limit_response, build_ingest_response,
    build_size_limit_response,
)

router = APIRouter(tags=["Ingest"])
logger = logging.getLogger("logvault.ingest")


def _maybe_gunzip(body: bytes, content_encoding: Optional[str]) -> bytes:
    if (content_encoding or "").lower() == "gzip":
        return gzip.decompress(body)
    # also auto-detect gz magic number (1F 8B)
    if len(body) >= 2 and body[0] == 0x1F and body[1] == 0x8B:
        return gzip.decompress(body)
    return body


def _parse_events(content: str) -> Tuple[Optional[List[Any]], str]:
    """Parse a payload into a list of raw events.

    Accepts a single JSON object, a JSON array, ``{"events": [...]}`` or
    newline-delimited JSON. Returns ``(events, kind)``; ``events`` is None
    when the payload has no recognizable shape.
    """
    content = content.strip()
    if not content:
        return None, "empty"
    try:
        payload = json.loads(content)
    except json.JSONDecodeError:
        lines = [line.strip() for line in content.split("\n") if line.strip()]
        if len(lines) < 2:
            return None, "invalid_json"
        try:
            return [json.loads(line) for line in lines], "jsonl"
        except json.JSONDecodeError:
            return None, "invalid_json"

    if isinstance(payload, list):
        return payload, "array"
    if isinstance(payload, dict):
        if isinstance(payload.get("events"), list):
            return payload["events"], "wrapped"
        return [payload], "single"
    return None, "shape"


def _reject(reason: str, **fields):
    logger.warning("Ingest request rejected", extra={
        "trace_id": get_trace_id(),
        "component": "ingest",
        "event": "reject",
        "reason": reason,
        **fields
    })
    prometheus_metrics.increment_ingest_request_reject(reason)


@router.post("/ingest", status_code=202)
async def ingest(
    request: Request,
    content_encoding: Optional[str] = Header(None),
    principal=Depends(require_scopes("logs:write")),
):
    """Ingest one event, an array of events, or ``{"events": [...]}`` for the key's tenant."""
    raw = await request.body()
    actual_bytes = len(raw)
    if actual_bytes > config.MAX_COMPRESSED_SIZE_BYTES:
        _reject("size", actual_bytes=actual_bytes, encoding=content_encoding or "identity")
        return build_size_limit_response(content_encoding or "identity", actual_bytes)

    try:
        body = _maybe_gunzip(raw, content_encoding)
    except (OSError, EOFError, zlib.error) as e:
        _reject("decompress_error", error=str(e))
        return build_bad_request_response("decompress_failed", str(e))

    try:
        content = body.decode("utf-8")
    except UnicodeDecodeError:
        _reject("encoding_error")
        return build_bad_request_response("invalid_encoding", "Body is not valid UTF-8")

    events, kind = _parse_events(content)
    if events is None:
        _reject(kind)
        if kind == "invalid_json":
            return build_bad_request_response("invalid_json", "Body is not valid JSON or JSONL")
        return JSONResponse(status_code=422, content={
            "error": "bad_batch_shape",
            "detail": "expected an event object, a JSON array, or {\"events\": [...]}"
        })
    if not events:
        _reject("empty")
        return JSONResponse(status_code=422, content={"error": "empty_batch", "detail": "no events in payload"})
    if len(events) > config.MAX_RECORDS_PER_BATCH:
        _reject("count", observed=len(events), kind=kind)
        return build_count_limit_response(len(events))

    batch = await run_in_threadpool(request.app.state.engine.pipeline.ingest_for_tenant,
                                    principal.tenant_id, events)

    logger.info("Ingest request processed", extra={
        "trace_id": get_trace_id(),
        "component": "ingest",
        "tenant_id": principal.tenant_id,
        "kind": kind,
        "bytes": actual_bytes,
        "accepted": batch.accepted,
        "rejected": batch.rejected
    })
    return build_ingest_response(batch)
