from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.dialects.postgresql import UUID

from lead_signals.models.base import Base


class Demo(Base):
    __tablename__ = "demos"
    id = Column(UUID(as_uuid=True), primary_key=True)
    lead_id = Column(UUID(as_uuid=True))
    status = Column(String(50))
    email_sent_at = Column(DateTime(timezone=True))
    first_viewed_at = Column(DateTime(timezone=True))
    last_viewed_at = Column(DateTime(timezone=True))
    view_count = Column(Integer)
    created_at = Column(DateTime(timezone=True), nullable=False)


class DemoView(Base):
    __tablename__ = "demo_views"
    id = Column(UUID(as_uuid=True), primary_key=True)
    demo_id = Column(UUID(as_uuid=True), nullable=False)
    lead_id = Column(UUID(as_uuid=True))
    progress_percent = Column(Integer)
    created_at = Column(DateTime(timezone=True), nullable=False)
