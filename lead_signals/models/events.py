"""Source event tables.

Lead references on these tables are loose: ``lead_id`` and
``related_to_id`` carry no foreign key, may be NULL, and may point at a
lead that no longer exists.
"""

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.dialects.postgresql import UUID

from lead_signals.models.base import Base


class EmailEvent(Base):
    __tablename__ = "email_events"
    id = Column(UUID(as_uuid=True), primary_key=True)
    email_id = Column(UUID(as_uuid=True))
    lead_id = Column(UUID(as_uuid=True))
    event_type = Column(String(50), nullable=False)
    url = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False)


class Note(Base):
    __tablename__ = "notes"
    id = Column(UUID(as_uuid=True), primary_key=True)
    related_to_id = Column(UUID(as_uuid=True))
    related_to_type = Column(String(50), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)


class CallLog(Base):
    __tablename__ = "call_logs"
    id = Column(UUID(as_uuid=True), primary_key=True)
    lead_id = Column(UUID(as_uuid=True))
    summary = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False)


class Activity(Base):
    __tablename__ = "activities"
    id = Column(UUID(as_uuid=True), primary_key=True)
    related_to_id = Column(UUID(as_uuid=True))
    related_to_type = Column(String(50))
    type = Column(String(50), nullable=False)
    subject = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
