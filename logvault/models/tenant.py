from sqlalchemy import Column, String, Integer, Boolean, JSON, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import relationship
from logvault.db import Base


class Tenant(Base):
    __tablename__ = "tenants"
    tenant_id = Column(String(64), primary_key=True)
    name = Column(String(128), nullable=False)
    description = Column(String(512), nullable=True)
    plan_id = Column(String(32), ForeignKey("plans.plan_id"), nullable=False)
    host_id = Column(String(32), ForeignKey("search_hosts.host_id"), nullable=False)
    default_bucket = Column(String(64), nullable=True)
    # set on first route resolution; region/plan changes then require a migration
    route_pinned = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    plan = relationship("Plan", lazy="joined")
    search_host = relationship("SearchHost", lazy="joined")
    buckets = relationship("LogBucket", lazy="selectin", cascade="all, delete-orphan",
                           order_by="LogBucket.sort_order")


class LogBucket(Base):
    __tablename__ = "log_buckets"
    __table_args__ = (UniqueConstraint("tenant_id", "name", name="uq_bucket_tenant_name"),)
    bucket_id = Column(String(32), primary_key=True)
    tenant_id = Column(String(64), ForeignKey("tenants.tenant_id"), index=True, nullable=False)
    name = Column(String(64), nullable=False)
    slug = Column(String(64), nullable=False)
    description = Column(String(256), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    accepts = Column(JSON, nullable=False, default=list)  # event-type tags


class DefaultLogBucket(Base):
    __tablename__ = "default_log_buckets"
    bucket_id = Column(String(32), primary_key=True)
    name = Column(String(64), nullable=False, unique=True)
    slug = Column(String(64), nullable=False)
    description = Column(String(256), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    accepts = Column(JSON, nullable=False, default=list)
