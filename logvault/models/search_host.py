from sqlalchemy import Column, String, Integer, Boolean, DateTime, func
from logvault.db import Base


class SearchHost(Base):
    __tablename__ = "search_hosts"
    host_id = Column(String(32), primary_key=True)
    name = Column(String(128), nullable=False)
    host = Column(String(255), nullable=False, default="localhost")
    port = Column(Integer, nullable=False, default=9200)
    protocol = Column(String(8), nullable=False, default="http")
    region = Column(String(32), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
