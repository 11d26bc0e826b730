"""
Tenant lifecycle operations: retention enforcement and full purges.

Both operations delete through a ``TenantScopedFilter`` and are serialized
per tenant by ``TenantLocks``; operations on different tenants run in
parallel.
"""
import hashlib
import hmac
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from .errors import (
    ConfirmationMismatch, InactivePlan, LifecycleBusy, LogVaultError, NotFound,
    StorageRejected, StorageUnavailable, UnknownTenant,
)
from .logging_config import log_lifecycle_event
from .routing import RouteResolver
from .services.prometheus_metrics import prometheus_metrics
from .storage.base import StorageBackend
from .storage.filters import TenantScopedFilter, format_timestamp

logger = logging.getLogger("logvault.lifecycle")


@dataclass(frozen=True)
class EvictionReport:
    tenant_id: str
    target: Optional[str]
    cutoff: Optional[str]
    retention_days: Optional[int]
    deleted_count: int
    complete: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PurgeReport:
    tenant_id: str
    target: Optional[str]
    deleted_count: int
    complete: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class TenantLocks:
    """Per-tenant advisory locks for lifecycle operations.

    A tenant's lock exists only while some operation holds or waits on it.
    """

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout
        # tenant id -> [lock, holders and waiters]
        self._locks: Dict[str, list] = {}
        self._guard = threading.Lock()

    def active_count(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, tenant_id: str, timeout: Optional[float] = None):
        with self._guard:
            entry = self._locks.get(tenant_id)
            if entry is None:
                entry = self._locks[tenant_id] = [threading.Lock(), 0]
            entry[1] += 1
        lock = entry[0]
        try:
            start = time.monotonic()
            acquired = lock.acquire(timeout=self.timeout if timeout is None else timeout)
            prometheus_metrics.observe_lock_wait(time.monotonic() - start)
            if not acquired:
                raise LifecycleBusy(f"another lifecycle operation is running for tenant {tenant_id}",
                                    tenant_id=tenant_id)
            try:
                yield
            finally:
                lock.release()
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[tenant_id]


class PurgeTokenIssuer:
    """Issues short-lived confirmation tokens bound to one tenant.

    Token format: ``<expiry-epoch>.<hex hmac-sha256(secret, tenant_id:expiry)>``.
    """

    def __init__(self, secret: str, ttl_seconds: int = 300, clock: Callable[[], float] = time.time):
        if not secret:
            raise ValueError("purge token secret must not be empty")
        self._secret = secret.encode("utf-8")
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def _sign(self, tenant_id: str, expiry: int) -> str:
        msg = f"{tenant_id}:{expiry}".encode("utf-8")
        return hmac.new(self._secret, msg, hashlib.sha256).hexdigest()

    def issue(self, tenant_id: str) -> str:
        if not tenant_id:
            raise ValueError("tenant id is required")
        expiry = int(self.clock()) + self.ttl_seconds
        return f"{expiry}.{self._sign(tenant_id, expiry)}"

    def verify(self, tenant_id: str, token: Optional[str]) -> None:
        if not tenant_id or not token or not isinstance(token, str):
            raise ConfirmationMismatch("confirmation token is required")
        if token == tenant_id:
            raise ConfirmationMismatch("the tenant id is not a confirmation token")
        expiry_s, _, signature = token.partition(".")
        if not expiry_s.isdigit() or not signature:
            raise ConfirmationMismatch("malformed confirmation token")
        expiry = int(expiry_s)
        if not hmac.compare_digest(signature, self._sign(tenant_id, expiry)):
            raise ConfirmationMismatch("confirmation token does not match this tenant")
        if expiry < self.clock():
            raise ConfirmationMismatch("confirmation token expired")


def _lookup_fresh(directory, tenant_id: str):
    if not tenant_id:
        raise UnknownTenant("tenant id is required")
    try:
        return directory.lookup_tenant(tenant_id, fresh=True)
    except NotFound:
        raise UnknownTenant(f"tenant {tenant_id} not found", tenant_id=tenant_id)


class RetentionEnforcer:

    def __init__(
        self,
        directory,
        resolver: RouteResolver,
        storage: StorageBackend,
        locks: TenantLocks,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        delete_deadline: Optional[float] = None,
        sweep_workers: int = 4,
    ):
        self.directory = directory
        self.resolver = resolver
        self.storage = storage
        self.locks = locks
        self.clock = clock
        self.delete_deadline = delete_deadline
        self.sweep_workers = max(1, sweep_workers)

    def enforce(self, tenant_id: str, deadline: Optional[float] = None) -> EvictionReport:
        """Delete the tenant's events older than its plan's retention window.

        Directory and routing problems raise. Storage failures are reported
        as an incomplete report.
        """
        with self.locks.hold(tenant_id):
            # retention must match the committed plan, so never read from cache
            tenant = _lookup_fresh(self.directory, tenant_id)
            if tenant.retention_days <= 0:
                raise InactivePlan(f"plan {tenant.plan_tier} has no retention window", tenant_id=tenant_id)

            target = self.resolver.resolve(tenant.region, tenant.plan_tier)
            cutoff = self.clock() - timedelta(days=tenant.retention_days)
            flt = TenantScopedFilter(tenant.tenant_id).older_than(cutoff)

            try:
                result = self.storage.delete_where(
                    target.name, flt, deadline=self.delete_deadline if deadline is None else deadline)
            except (StorageUnavailable, StorageRejected) as e:
                prometheus_metrics.record_retention_run("failed")
                logger.warning("Retention enforcement failed", extra={
                    "component": "lifecycle",
                    "event": "retention_failed",
                    "tenant_id": tenant_id,
                    "target": target.name,
                    "reason": e.code,
                    "detail": e.detail
                })
                return EvictionReport(tenant_id=tenant_id, target=target.name,
                                      cutoff=format_timestamp(cutoff), retention_days=tenant.retention_days,
                                      deleted_count=0, complete=False, error=e.code)

        outcome = "complete" if result.complete else "incomplete"
        prometheus_metrics.record_retention_run(outcome, result.deleted_count)
        log_lifecycle_event("retention", "Retention enforced",
                            tenant_id=tenant_id,
                            target=target.name,
                            cutoff=format_timestamp(cutoff),
                            deleted=result.deleted_count,
                            complete=result.complete)
        return EvictionReport(tenant_id=tenant_id, target=target.name, cutoff=format_timestamp(cutoff),
                              retention_days=tenant.retention_days, deleted_count=result.deleted_count,
                              complete=result.complete)

    def enforce_all(self, tenant_ids: Iterable[str], deadline: Optional[float] = None) -> List[EvictionReport]:
        """Run ``enforce`` for every tenant independently.

        A failure for one tenant is reported in its entry and does not stop
        the others.
        """
        tenant_ids = list(tenant_ids)

        def run(tid: str) -> EvictionReport:
            try:
                return self.enforce(tid, deadline=deadline)
            except LogVaultError as e:
                prometheus_metrics.record_retention_run("error")
                logger.warning("Retention sweep skipped tenant", extra={
                    "component": "lifecycle",
                    "event": "retention_error",
                    "tenant_id": tid,
                    "reason": e.code,
                    "detail": e.detail
                })
                return EvictionReport(tenant_id=tid, target=None, cutoff=None, retention_days=None,
                                      deleted_count=0, complete=False, error=e.code)

        if len(tenant_ids) <= 1 or self.sweep_workers == 1:
            return [run(t) for t in tenant_ids]
        with ThreadPoolExecutor(max_workers=min(self.sweep_workers, len(tenant_ids))) as pool:
            return list(pool.map(run, tenant_ids))


class PurgeExecutor:

    def __init__(
        self,
        directory,
        resolver: RouteResolver,
        storage: StorageBackend,
        locks: TenantLocks,
        tokens: PurgeTokenIssuer,
        delete_deadline: Optional[float] = None,
    ):
        self.directory = directory
        self.resolver = resolver
        self.storage = storage
        self.locks = locks
        self.tokens = tokens
        self.delete_deadline = delete_deadline

    def issue_token(self, tenant_id: str) -> str:
        # only existing tenants get a token
        _lookup_fresh(self.directory, tenant_id)
        return self.tokens.issue(tenant_id)

    def purge(self, tenant_id: str, confirmation_token: Optional[str],
              deadline: Optional[float] = None) -> PurgeReport:
        """Delete every stored event of one tenant, regardless of age."""
        try:
            self.tokens.verify(tenant_id, confirmation_token)
        except ConfirmationMismatch as e:
            prometheus_metrics.record_purge_run("refused")
            logger.warning("Purge refused", extra={
                "component": "lifecycle",
                "event": "purge_refused",
                "tenant_id": tenant_id,
                "detail": e.detail
            })
            raise

        with self.locks.hold(tenant_id):
            tenant = _lookup_fresh(self.directory, tenant_id)
            target = self.resolver.resolve(tenant.region, tenant.plan_tier)
            flt = TenantScopedFilter(tenant.tenant_id)

            log_lifecycle_event("purge_started", "Tenant purge started",
                                tenant_id=tenant_id, target=target.name)
            try:
                result = self.storage.delete_where(
                    target.name, flt, deadline=self.delete_deadline if deadline is None else deadline)
            except (StorageUnavailable, StorageRejected) as e:
                prometheus_metrics.record_purge_run("failed")
                logger.error("Tenant purge failed", extra={
                    "component": "lifecycle",
                    "event": "purge_failed",
                    "tenant_id": tenant_id,
                    "target": target.name,
                    "reason": e.code,
                    "detail": e.detail
                })
                return PurgeReport(tenant_id=tenant_id, target=target.name, deleted_count=0,
                                   complete=False, error=e.code)

        prometheus_metrics.record_purge_run("complete" if result.complete else "incomplete",
                                            result.deleted_count)
        log_lifecycle_event("purge", "Tenant purged",
                            tenant_id=tenant_id,
                            target=target.name,
                            deleted=result.deleted_count,
                            complete=result.complete)
        return PurgeReport(tenant_id=tenant_id, target=target.name,
                           deleted_count=result.deleted_count, complete=result.complete)
