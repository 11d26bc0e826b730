"""
Operator endpoints: tenant listing, retention enforcement and tenant purges.
"""
from fastapi import APIRouter, Body, Depends, Request
import logging
from typing import Optional

from ..auth.deps import require_admin
from ..schemas.lifecycle import (
    EvictionReportOut, PurgeReportOut, PurgeRequest, PurgeTokenOut, RetentionSweepOut,
    RetentionSweepRequest,
)
from ..schemas.tenant import TenantListOut, TenantOut

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin())])
logger = logging.getLogger("logvault.admin")


def _engine(request: Request):
    return request.app.state.engine


@router.get("/tenants", response_model=TenantListOut)
def list_tenants(request: Request):
    tenants = [TenantOut(**vars(t)) for t in _engine(request).catalog.list_tenants()]
    return TenantListOut(tenants=tenants, total=len(tenants))


@router.post("/tenants/{tenant_id}/retention", response_model=EvictionReportOut)
def enforce_retention(tenant_id: str, request: Request):
    """Delete the tenant's events older than its plan's retention window."""
    report = _engine(request).enforcer.enforce(tenant_id)
    return EvictionReportOut(**report.to_dict())


@router.post("/retention", response_model=RetentionSweepOut)
def retention_sweep(request: Request, body: Optional[RetentionSweepRequest] = Body(None)):
    """Enforce retention for every tenant (or the listed ones) independently."""
    engine = _engine(request)
    tenant_ids = body.tenant_ids if body and body.tenant_ids else engine.catalog.tenant_ids()
    reports = engine.enforcer.enforce_all(tenant_ids)
    complete = sum(1 for r in reports if r.complete)
    logger.info("Retention sweep finished", extra={
        "component": "admin",
        "event": "retention_sweep",
        "tenants": len(reports),
        "complete": complete
    })
    return RetentionSweepOut(
        tenants=len(reports),
        complete=complete,
        failed=len(reports) - complete,
        reports=[EvictionReportOut(**r.to_dict()) for r in reports],
    )


@router.post("/tenants/{tenant_id}/purge-token", response_model=PurgeTokenOut)
def issue_purge_token(tenant_id: str, request: Request):
    engine = _engine(request)
    token = engine.purger.issue_token(tenant_id)
    return PurgeTokenOut(tenant_id=tenant_id, confirmation_token=token,
                         expires_in=engine.purger.tokens.ttl_seconds)


@router.post("/tenants/{tenant_id}/purge", response_model=PurgeReportOut)
def purge_tenant(tenant_id: str, body: PurgeRequest, request: Request):
    """Permanently delete every stored event of the tenant."""
    report = _engine(request).purger.purge(tenant_id, body.confirmation_token)
    return PurgeReportOut(**report.to_dict())
