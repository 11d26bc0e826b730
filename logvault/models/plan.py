from sqlalchemy import Column, String, Integer, Boolean, Float, JSON, DateTime, func
from logvault.db import Base


class Plan(Base):
    __tablename__ = "plans"
    plan_id = Column(String(32), primary_key=True)
    name = Column(String(32), nullable=False, unique=True)  # tier name, e.g. "pro"
    display_name = Column(String(64), nullable=False)
    retention_days = Column(Integer, nullable=False, default=7)
    price = Column(Float, nullable=False, default=0.0)
    interval = Column(String(16), nullable=False, default="month")
    features = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
