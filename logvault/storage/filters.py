"""
Deletion filters.

``TenantScopedFilter`` is the only filter the storage backends accept for
delete-by-filter. It cannot be built without a tenant id, so every deletion
carries the tenant term.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

TENANT_FIELD = "tenantId"
BUCKET_FIELD = "bucket"
TIMESTAMP_FIELD = "@timestamp"


class TenantScopedFilter:
    __slots__ = ("_tenant_id", "_before", "_bucket")

    def __init__(self, tenant_id: str, *, before: Optional[datetime] = None, bucket: Optional[str] = None):
        if not isinstance(tenant_id, str) or not tenant_id.strip():
            raise ValueError("a deletion filter requires a non-empty tenant id")
        if before is not None and before.tzinfo is None:
            raise ValueError("cutoff must be timezone-aware")
        self._tenant_id = tenant_id
        self._before = before.astimezone(timezone.utc) if before is not None else None
        self._bucket = bucket

    @property
    def tenant_id(self) -> str:
        return self._tenant_id

    @property
    def before(self) -> Optional[datetime]:
        return self._before

    @property
    def bucket(self) -> Optional[str]:
        return self._bucket

    def older_than(self, cutoff: datetime) -> "TenantScopedFilter":
        return TenantScopedFilter(self._tenant_id, before=cutoff, bucket=self._bucket)

    def in_bucket(self, bucket: str) -> "TenantScopedFilter":
        return TenantScopedFilter(self._tenant_id, before=self._before, bucket=bucket)

    def matches(self, document: Dict[str, Any]) -> bool:
        if document.get(TENANT_FIELD) != self._tenant_id:
            return False
        if self._bucket is not None and document.get(BUCKET_FIELD) != self._bucket:
            return False
        if self._before is not None:
            ts = parse_document_timestamp(document.get(TIMESTAMP_FIELD))
            # strictly older than the cutoff
            if ts is None or not ts < self._before:
                return False
        return True

    def to_query(self) -> Dict[str, Any]:
        """Render as an Elasticsearch query DSL body."""
        clauses = [{"term": {TENANT_FIELD: self._tenant_id}}]
        if self._bucket is not None:
            clauses.append({"term": {BUCKET_FIELD: self._bucket}})
        if self._before is not None:
            clauses.append({"range": {TIMESTAMP_FIELD: {"lt": format_timestamp(self._before)}}})
        return {"bool": {"filter": clauses}}

    def __repr__(self) -> str:
        return f"TenantScopedFilter(tenant_id={self._tenant_id!r}, before={self._before!r}, bucket={self._bucket!r})"


def format_timestamp(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def parse_document_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
