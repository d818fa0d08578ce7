from sqlalchemy import CheckConstraint, Column, DateTime, Index, Numeric
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.sql import func

from lead_signals.models.base import Base


class LeadScoreRow(Base):
    """Current score snapshot for one lead.

    One row per lead, overwritten on every recompute.  ``score_factors``
    holds the ``ScoreFactors`` audit trail that produced the numbers.
    """

    __tablename__ = "lead_scores"
    lead_id = Column(UUID(as_uuid=True), primary_key=True)
    overall_score = Column(Numeric(5, 2), nullable=False)
    engagement_score = Column(Numeric(5, 2), nullable=False)
    urgency_score = Column(Numeric(5, 2), nullable=False)
    fit_score = Column(Numeric(5, 2), nullable=False)
    score_factors = Column(JSONB, nullable=False)
    last_calculated = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "overall_score BETWEEN 0 AND 100", name="ck_lead_scores_overall_range"
        ),
        Index("ix_lead_scores_overall_score", overall_score.desc()),
    )
