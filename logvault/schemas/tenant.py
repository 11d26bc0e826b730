from pydantic import BaseModel
from typing import List, Optional


class TenantOut(BaseModel):
    tenant_id: str
    name: str
    plan: str
    retention_days: int
    region: str
    storage_target: Optional[str]


class TenantListOut(BaseModel):
    tenants: List[TenantOut]
    total: int
