"""
Tenant directory: read-only view of the catalog used by the engine.
"""
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.orm import sessionmaker

from .classifier import BucketSpec
from .db import session_scope
from .errors import NotFound
from .models.tenant import Tenant
from .services.cache import MetadataCache

logger = logging.getLogger("logvault.directory")


@dataclass(frozen=True)
class TenantRecord:
    tenant_id: str
    region: str
    plan_tier: str
    retention_days: int
    is_active: bool
    buckets: Tuple[BucketSpec, ...] = ()
    default_bucket: Optional[str] = None
    route_pinned: bool = False

    @property
    def bucket_names(self) -> Tuple[str, ...]:
        return tuple(b.name for b in self.buckets)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["buckets"] = [{"name": b.name, "accepts": sorted(b.accepts)} for b in self.buckets]
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TenantRecord":
        buckets = tuple(BucketSpec(name=b["name"], accepts=frozenset(b.get("accepts") or []))
                        for b in d.get("buckets") or [])
        return cls(
            tenant_id=d["tenant_id"],
            region=d["region"],
            plan_tier=d["plan_tier"],
            retention_days=int(d["retention_days"]),
            is_active=bool(d["is_active"]),
            buckets=buckets,
            default_bucket=d.get("default_bucket"),
            route_pinned=bool(d.get("route_pinned", False)),
        )


class SqlTenantDirectory:

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def lookup_tenant(self, tenant_id: str, fresh: bool = False) -> TenantRecord:
        if not tenant_id:
            raise NotFound("tenant id is required")
        with session_scope(self.session_factory) as db:
            t = db.get(Tenant, tenant_id)
            if t is None:
                raise NotFound(f"tenant {tenant_id} not found", tenant_id=tenant_id)
            return TenantRecord(
                tenant_id=t.tenant_id,
                region=t.search_host.region,
                plan_tier=t.plan.name,
                retention_days=t.plan.retention_days,
                is_active=t.plan.is_active,
                buckets=tuple(BucketSpec(name=b.name, accepts=frozenset(b.accepts or []))
                              for b in t.buckets),
                default_bucket=t.default_bucket,
                route_pinned=bool(t.route_pinned),
            )

    def pin_route(self, tenant_id: str) -> None:
        with session_scope(self.session_factory) as db:
            t = db.get(Tenant, tenant_id)
            if t is not None and not t.route_pinned:
                t.route_pinned = True
                logger.info("Tenant route pinned", extra={
                    "component": "directory",
                    "tenant_id": tenant_id
                })


class CachedTenantDirectory:
    """Directory wrapper serving lookups from a bounded-freshness cache.

    ``fresh=True`` always reads through; retention enforcement uses it so the
    retention window matches the committed plan.
    """

    def __init__(self, inner: SqlTenantDirectory, cache: MetadataCache):
        self.inner = inner
        self.cache = cache

    def lookup_tenant(self, tenant_id: str, fresh: bool = False) -> TenantRecord:
        if not fresh:
            cached = self.cache.get(tenant_id)
            if cached is not None:
                return TenantRecord.from_dict(cached)
        record = self.inner.lookup_tenant(tenant_id, fresh=True)
        self.cache.set(tenant_id, record.to_dict())
        return record

    def pin_route(self, tenant_id: str) -> None:
        self.inner.pin_route(tenant_id)
        self.cache.invalidate(tenant_id)

    def invalidate(self, tenant_id: str) -> None:
        self.cache.invalidate(tenant_id)
