from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from typing import Optional

from ..auth.deps import require_admin
from ..logging_config import get_memory_handler

router = APIRouter(tags=["Logs"])


def _format_line(entry: dict) -> str:
    parts = [
        entry.get("timestamp") or "",
        entry.get("level") or "",
        entry.get("logger") or "",
        entry.get("msg") or "",
        f"tenant={entry['tenant_id']}" if entry.get("tenant_id") else "",
        f"trace={entry['trace_id']}" if entry.get("trace_id") else "",
    ]
    return " ".join(p for p in parts if p)


@router.get("/logs/tail", dependencies=[Depends(require_admin())])
def tail_logs(limit: int = Query(500, ge=1, le=5000),
              since: Optional[str] = Query(None, description="ISO timestamp lower bound"),
              tenant_id: Optional[str] = Query(None),
              level: Optional[str] = Query(None, description="Minimum level, e.g. WARNING"),
              format: str = Query("json", pattern="^(text|json)$")):
    """Recent service log lines from the in-memory ring buffer."""
    entries = get_memory_handler().get_logs(since=since, limit=limit, tenant_id=tenant_id, min_level=level)
    if format == "json":
        return {"lines": entries, "count": len(entries)}
    return Response(content="\n".join(_format_line(e) for e in entries), media_type="text/plain")
