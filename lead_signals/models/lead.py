from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import UUID

from lead_signals.models.base import Base


class Lead(Base):
    """Lead master row, read-only from this engine's point of view.

    Only the columns the signal engine consumes are mapped; the table is
    owned by the CRM and is not managed by this project's migrations.
    """

    __tablename__ = "leads"
    id = Column(UUID(as_uuid=True), primary_key=True)
    pipeline_status = Column(String(50), nullable=False)
    industry = Column(String(100))
    has_website = Column(Boolean, nullable=False, default=False)
    google_rating = Column(Numeric(2, 1))
    google_review_count = Column(Integer)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
