"""
Catalog management: plans, search hosts, tenants, buckets and API keys.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy.orm import sessionmaker

from ..db import session_scope
from ..errors import LogVaultError, NotFound, RouteLocked
from ..models import ApiKey, DefaultLogBucket, LogBucket, Plan, SearchHost, Tenant
from ..routing import RouteResolver
from ..auth.keys import generate_key, hash_token, norm_scopes, validate_scopes

logger = logging.getLogger("logvault.catalog")

DEFAULT_PLANS = [
    {"name": "free", "display_name": "Free", "retention_days": 7, "price": 0.0,
     "features": ["1GB storage", "7 day retention", "Basic search"]},
    {"name": "pro", "display_name": "Pro", "retention_days": 30, "price": 29.99,
     "features": ["50GB storage", "30 day retention", "Advanced search", "Custom alerts"]},
    {"name": "enterprise", "display_name": "Enterprise", "retention_days": 90, "price": 99.99,
     "features": ["Unlimited storage", "90 day retention", "Advanced search", "Custom alerts",
                  "Priority support", "SSO"]},
]

DEFAULT_HOSTS = [
    {"name": "LogVault EU", "region": "eu1"},
    {"name": "LogVault US", "region": "us1"},
]

DEFAULT_BUCKET_TEMPLATES = [
    {"name": "General", "slug": "general", "description": "General server logs and system messages", "sort_order": 1},
    {"name": "Anticheat", "slug": "anticheat", "description": "Anti-cheat detections and violations", "sort_order": 2},
    {"name": "Economy", "slug": "economy", "description": "Economy transactions and money logs", "sort_order": 3,
     "accepts": ["transaction"]},
    {"name": "Events", "slug": "events", "description": "Player events and interactions", "sort_order": 4},
    {"name": "Admin", "slug": "admin", "description": "Admin actions and commands", "sort_order": 5},
    {"name": "Errors", "slug": "errors", "description": "Server errors and exceptions", "sort_order": 6},
]


def _new_id(prefix: str = "") -> str:
    return prefix + uuid.uuid4().hex[:12]


@dataclass(frozen=True)
class TenantSummary:
    tenant_id: str
    name: str
    plan: str
    retention_days: int
    region: str
    storage_target: Optional[str]


@dataclass(frozen=True)
class IssuedKey:
    key_id: str
    tenant_id: str
    api_key: str
    scopes: List[str]


@dataclass(frozen=True)
class KeyPrincipal:
    key_id: str
    tenant_id: str
    scopes: List[str]


class CatalogService:

    def __init__(self, session_factory: sessionmaker, resolver: Optional[RouteResolver] = None):
        self.session_factory = session_factory
        self.resolver = resolver

    def seed_defaults(self) -> Dict[str, int]:
        """Create default plans, hosts and bucket templates. Safe to call repeatedly."""
        created = {"plans": 0, "hosts": 0, "bucket_templates": 0}
        with session_scope(self.session_factory) as db:
            existing_plans = {p.name for p in db.query(Plan).all()}
            for p in DEFAULT_PLANS:
                if p["name"] not in existing_plans:
                    db.add(Plan(plan_id=_new_id(), interval="month", is_active=True, **p))
                    created["plans"] += 1

            existing_regions = {h.region for h in db.query(SearchHost).all()}
            for h in DEFAULT_HOSTS:
                if h["region"] not in existing_regions:
                    db.add(SearchHost(host_id=_new_id(), host="localhost", port=9200,
                                      protocol="http", is_active=True, **h))
                    created["hosts"] += 1

            existing_templates = {b.name for b in db.query(DefaultLogBucket).all()}
            for b in DEFAULT_BUCKET_TEMPLATES:
                if b["name"] not in existing_templates:
                    db.add(DefaultLogBucket(bucket_id=_new_id(), **{"accepts": [], **b}))
                    created["bucket_templates"] += 1

        logger.info("Catalog defaults seeded", extra={"component": "catalog", **created})
        return created

    def create_plan(self, name: str, retention_days: int, display_name: Optional[str] = None,
                    is_active: bool = True, price: float = 0.0) -> str:
        if is_active and retention_days <= 0:
            raise ValueError("an active plan needs a positive retention window")
        with session_scope(self.session_factory) as db:
            plan = Plan(plan_id=_new_id(), name=name.lower(), display_name=display_name or name.title(),
                        retention_days=retention_days, price=price, features=[], is_active=is_active)
            db.add(plan)
            return plan.plan_id

    def set_plan_active(self, plan_name: str, is_active: bool) -> None:
        with session_scope(self.session_factory) as db:
            plan = self._plan(db, plan_name)
            if is_active and plan.retention_days <= 0:
                raise ValueError("an active plan needs a positive retention window")
            plan.is_active = is_active

    def set_plan_retention(self, plan_name: str, retention_days: int) -> None:
        with session_scope(self.session_factory) as db:
            plan = self._plan(db, plan_name)
            if plan.is_active and retention_days <= 0:
                raise ValueError("an active plan needs a positive retention window")
            plan.retention_days = retention_days

    def create_tenant(
        self,
        name: str,
        plan: str,
        region: str,
        tenant_id: Optional[str] = None,
        buckets: Optional[Sequence] = None,
        default_bucket: Optional[str] = None,
        description: Optional[str] = None,
    ) -> str:
        """Create a tenant.

        ``buckets`` is a list of names or ``{"name": ..., "accepts": [...]}``
        dicts. When omitted the default templates are copied; pass an empty
        list for a tenant without buckets.
        """
        tenant_id = tenant_id or _new_id("srv_")
        with session_scope(self.session_factory) as db:
            plan_row = self._plan(db, plan)
            host = db.query(SearchHost).filter(SearchHost.region == region).first()
            if host is None:
                raise NotFound(f"no search host for region {region}")

            tenant = Tenant(tenant_id=tenant_id, name=name, description=description,
                            plan_id=plan_row.plan_id, host_id=host.host_id,
                            default_bucket=default_bucket, route_pinned=False)
            db.add(tenant)

            if buckets is None:
                templates = db.query(DefaultLogBucket).order_by(DefaultLogBucket.sort_order).all()
                specs = [{"name": t.name, "slug": t.slug, "description": t.description,
                          "sort_order": t.sort_order, "accepts": list(t.accepts or [])}
                         for t in templates]
            else:
                specs = [_bucket_spec(b, i) for i, b in enumerate(buckets, start=1)]

            for spec in specs:
                db.add(LogBucket(bucket_id=_new_id(), tenant_id=tenant_id, **spec))

        logger.info("Tenant created", extra={
            "component": "catalog",
            "tenant_id": tenant_id,
            "plan": plan,
            "region": region,
            "bucket_count": len(specs)
        })
        return tenant_id

    def change_plan(self, tenant_id: str, plan: str, migrate: bool = False) -> None:
        with session_scope(self.session_factory) as db:
            tenant = self._tenant(db, tenant_id)
            if tenant.route_pinned and not migrate:
                raise RouteLocked(f"tenant {tenant_id} has a resolved route; plan change requires a migration",
                                  tenant_id=tenant_id)
            tenant.plan_id = self._plan(db, plan).plan_id
            if migrate:
                tenant.route_pinned = False

    def change_region(self, tenant_id: str, region: str, migrate: bool = False) -> None:
        with session_scope(self.session_factory) as db:
            tenant = self._tenant(db, tenant_id)
            if tenant.route_pinned and not migrate:
                raise RouteLocked(f"tenant {tenant_id} has a resolved route; region change requires a migration",
                                  tenant_id=tenant_id)
            host = db.query(SearchHost).filter(SearchHost.region == region).first()
            if host is None:
                raise NotFound(f"no search host for region {region}")
            tenant.host_id = host.host_id
            if migrate:
                tenant.route_pinned = False

    def add_bucket(self, tenant_id: str, name: str, accepts: Iterable[str] = ()) -> None:
        with session_scope(self.session_factory) as db:
            tenant = self._tenant(db, tenant_id)
            order = max([b.sort_order for b in tenant.buckets] or [0]) + 1
            db.add(LogBucket(bucket_id=_new_id(), tenant_id=tenant_id, name=name,
                             slug=name.lower(), sort_order=order, accepts=list(accepts)))

    def list_tenants(self) -> List[TenantSummary]:
        out = []
        with session_scope(self.session_factory) as db:
            for t in db.query(Tenant).order_by(Tenant.created_at, Tenant.tenant_id).all():
                target = None
                if self.resolver is not None:
                    try:
                        target = self.resolver.resolve(t.search_host.region, t.plan.name).name
                    except LogVaultError as e:
                        logger.warning("Tenant has no valid route", extra={
                            "component": "catalog",
                            "tenant_id": t.tenant_id,
                            "error": str(e)
                        })
                out.append(TenantSummary(
                    tenant_id=t.tenant_id,
                    name=t.name,
                    plan=t.plan.display_name,
                    retention_days=t.plan.retention_days,
                    region=t.search_host.region,
                    storage_target=target,
                ))
        return out

    def tenant_ids(self) -> List[str]:
        with session_scope(self.session_factory) as db:
            return [row[0] for row in db.query(Tenant.tenant_id).order_by(Tenant.tenant_id).all()]

    def create_api_key(self, tenant_id: str, scopes: Sequence[str], name: str = "") -> IssuedKey:
        scopes = validate_scopes(scopes)
        if not scopes:
            raise ValueError("at least one scope is required")
        secret = generate_key()
        key_id = _new_id("key_")
        with session_scope(self.session_factory) as db:
            self._tenant(db, tenant_id)
            db.add(ApiKey(key_id=key_id, tenant_id=tenant_id, name=name,
                          hash=hash_token(secret), scopes=list(scopes), disabled=False))
        return IssuedKey(key_id=key_id, tenant_id=tenant_id, api_key=secret, scopes=list(scopes))

    def authenticate_key(self, token: str) -> Optional[KeyPrincipal]:
        if not token:
            return None
        with session_scope(self.session_factory) as db:
            key = db.query(ApiKey).filter(ApiKey.hash == hash_token(token),
                                          ApiKey.disabled == False).one_or_none()  # noqa: E712
            if key is None:
                return None
            return KeyPrincipal(key_id=key.key_id, tenant_id=key.tenant_id,
                                scopes=sorted(norm_scopes(key.scopes)))

    def disable_api_key(self, key_id: str) -> None:
        with session_scope(self.session_factory) as db:
            key = db.get(ApiKey, key_id)
            if key is None:
                raise NotFound(f"API key {key_id} not found")
            key.disabled = True

    def _plan(self, db, name: str) -> Plan:
        plan = db.query(Plan).filter(Plan.name == name.lower()).first()
        if plan is None:
            raise NotFound(f"plan {name} not found")
        return plan

    def _tenant(self, db, tenant_id: str) -> Tenant:
        tenant = db.get(Tenant, tenant_id)
        if tenant is None:
            raise NotFound(f"tenant {tenant_id} not found", tenant_id=tenant_id)
        return tenant


def _bucket_spec(b, position: int) -> Dict:
    if isinstance(b, str):
        return {"name": b, "slug": b.lower(), "description": None, "sort_order": position, "accepts": []}
    return {
        "name": b["name"],
        "slug": b.get("slug") or b["name"].lower(),
        "description": b.get("description"),
        "sort_order": b.get("sort_order", position),
        "accepts": list(b.get("accepts") or []),
    }
