from pydantic import BaseModel, Field
from typing import List, Optional


class PurgeRequest(BaseModel):
    confirmation_token: str = Field(..., min_length=1, description="Token from the purge-token endpoint")


class PurgeTokenOut(BaseModel):
    tenant_id: str
    confirmation_token: str
    expires_in: int


class RetentionSweepRequest(BaseModel):
    tenant_ids: Optional[List[str]] = Field(None, description="Tenants to sweep; all tenants when omitted")


class EvictionReportOut(BaseModel):
    tenant_id: str
    target: Optional[str]
    cutoff: Optional[str]
    retention_days: Optional[int]
    deleted_count: int
    complete: bool
    error: Optional[str] = None


class PurgeReportOut(BaseModel):
    tenant_id: str
    target: Optional[str]
    deleted_count: int
    complete: bool
    error: Optional[str] = None


class RetentionSweepOut(BaseModel):
    tenants: int
    complete: int
    failed: int
    reports: List[EvictionReportOut]
