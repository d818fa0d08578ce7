"""create lead_scores and lead_presence

Revision ID: 3b7e1d9c4a20
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3b7e1d9c4a20"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "lead_scores",
        sa.Column("lead_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("overall_score", sa.Numeric(5, 2), nullable=False),
        sa.Column("engagement_score", sa.Numeric(5, 2), nullable=False),
        sa.Column("urgency_score", sa.Numeric(5, 2), nullable=False),
        sa.Column("fit_score", sa.Numeric(5, 2), nullable=False),
        sa.Column("score_factors", postgresql.JSONB(), nullable=False),
        sa.Column("last_calculated", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=True,
        ),
        sa.CheckConstraint(
            "overall_score BETWEEN 0 AND 100", name="ck_lead_scores_overall_range"
        ),
    )
    # Priority list reads the top-N by overall score
    op.create_index(
        "ix_lead_scores_overall_score",
        "lead_scores",
        [sa.text("overall_score DESC")],
    )

    op.create_table(
        "lead_presence",
        sa.Column("lead_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=True,
        ),
    )


def downgrade() -> None:
    op.drop_table("lead_presence")
    op.drop_index("ix_lead_scores_overall_score", table_name="lead_scores")
    op.drop_table("lead_scores")
