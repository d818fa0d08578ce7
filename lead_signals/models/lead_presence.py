from sqlalchemy import Column, DateTime
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from lead_signals.models.base import Base


class LeadPresence(Base):
    """Explicit presence record written by the presence reporter."""

    __tablename__ = "lead_presence"
    lead_id = Column(UUID(as_uuid=True), primary_key=True)
    last_seen_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
