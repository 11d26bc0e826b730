from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, JSON, func
from logvault.db import Base


class ApiKey(Base):
    __tablename__ = "api_keys"
    key_id = Column(String(32), primary_key=True)
    tenant_id = Column(String(64), ForeignKey("tenants.tenant_id"), index=True, nullable=False)
    name = Column(String(128), nullable=False, default="")
    hash = Column(String(128), nullable=False, unique=True)  # hashed secret
    scopes = Column(JSON, nullable=False, default=["logs:write"])
    disabled = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
