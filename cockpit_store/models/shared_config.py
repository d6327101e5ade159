"""
Shared configuration model

A configured product saved under a short code so it can be sent as a link.
The stored configuration is the raw payload, replayed through the
configurator when the link is opened.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, JSON
from sqlalchemy.orm import relationship

from cockpit_store.core.database import Base
from cockpit_store.core.utils import utcnow


class SharedConfig(Base):
    __tablename__ = "shared_configs"

    id = Column(Integer, primary_key=True, index=True)
    short_code = Column(String(16), unique=True, nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)

    configuration = Column(JSON, nullable=False, default=dict)
    view_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    product = relationship("Product")
