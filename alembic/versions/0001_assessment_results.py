"""assessment results table

Revision ID: 0001_assessment_results
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_assessment_results"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "assessment_results",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("assessment_type", sa.String(length=32), nullable=False),
        sa.Column("assessment_id", sa.String(length=255), nullable=False),
        sa.Column("area_id", sa.String(length=255), nullable=False),
        sa.Column("area_title", sa.String(length=255), nullable=False),
        sa.Column("current_level", sa.Integer(), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("gap_indicators", sa.JSON(), nullable=False),
        sa.Column("remediation_actions", sa.JSON(), nullable=False),
        sa.Column("responses", sa.JSON(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "assessment_id", "area_id", name="uq_result_user_area"),
        sa.CheckConstraint("current_level BETWEEN 1 AND 5", name="ck_result_level_1_5"),
        sa.CheckConstraint("score BETWEEN 0 AND 100", name="ck_result_score_0_100"),
    )
    op.create_index("ix_assessment_results_user_id", "assessment_results", ["user_id"])
    op.create_index("ix_assessment_results_assessment_id", "assessment_results", ["assessment_id"])


def downgrade() -> None:
    op.drop_index("ix_assessment_results_assessment_id", table_name="assessment_results")
    op.drop_index("ix_assessment_results_user_id", table_name="assessment_results")
    op.drop_table("assessment_results")
