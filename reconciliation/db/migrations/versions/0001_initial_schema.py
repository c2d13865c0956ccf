"""Initial schema: cases, sessions, lifecycle events, case-number sequences.

Revision ID: 0001_initial
Revises: None
Create Date: 2026-10-18

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "0001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "reconciliation_cases",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("case_number", sa.String(50), nullable=False, unique=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("case_type", sa.String(30), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="NEW"),
        sa.Column("priority", sa.String(10), nullable=False, server_default="MEDIUM"),
        sa.Column("confidentiality", sa.String(20), nullable=False, server_default="MEDIUM"),
        sa.Column("plaintiff_id", sa.String(36), nullable=True),
        sa.Column("defendant_id", sa.String(36), nullable=True),
        sa.Column("mediator_id", sa.String(36), nullable=True),
        sa.Column("filing_date", sa.Date, nullable=False),
        sa.Column("settlement_date", sa.Date, nullable=True),
        sa.Column("settlement_amount", sa.Numeric(15, 2), nullable=True),
        sa.Column("settlement_terms", sa.Text, nullable=True),
        sa.Column("follow_up_required", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("follow_up_date", sa.Date, nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("documents", JSONB, nullable=False, server_default="[]"),
        sa.Column("metadata", JSONB, nullable=False, server_default="{}"),
        sa.Column("created_by", sa.String(36), nullable=True),
        sa.Column("updated_by", sa.String(36), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_by", sa.String(36), nullable=True),
    )
    op.create_index("ix_reconciliation_cases_case_type", "reconciliation_cases", ["case_type"])
    op.create_index("ix_reconciliation_cases_status", "reconciliation_cases", ["status"])
    op.create_index("ix_reconciliation_cases_plaintiff_id", "reconciliation_cases", ["plaintiff_id"])
    op.create_index("ix_reconciliation_cases_defendant_id", "reconciliation_cases", ["defendant_id"])
    op.create_index("ix_reconciliation_cases_mediator_id", "reconciliation_cases", ["mediator_id"])
    op.create_index("ix_reconciliation_cases_filing_date", "reconciliation_cases", ["filing_date"])
    op.create_index(
        "ix_cases_mediator_status", "reconciliation_cases", ["mediator_id", "status"]
    )
    op.create_index("ix_cases_type_filing", "reconciliation_cases", ["case_type", "filing_date"])

    op.create_table(
        "case_sessions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "case_id",
            sa.String(36),
            sa.ForeignKey("reconciliation_cases.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("session_type", sa.String(20), nullable=False, server_default="MEDIATION"),
        sa.Column("session_date", sa.Date, nullable=False),
        sa.Column("session_time", sa.Time, nullable=True),
        sa.Column("location", sa.String(500), nullable=True),
        sa.Column("attendees", JSONB, nullable=False, server_default="[]"),
        sa.Column("discussion_summary", sa.Text, nullable=True),
        sa.Column("agreements", JSONB, nullable=False, server_default="[]"),
        sa.Column("next_session_date", sa.Date, nullable=True),
        sa.Column("documents", JSONB, nullable=False, server_default="[]"),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("metadata", JSONB, nullable=False, server_default="{}"),
        sa.Column("created_by", sa.String(36), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_case_sessions_case_id", "case_sessions", ["case_id"])
    op.create_index("ix_case_sessions_session_type", "case_sessions", ["session_type"])
    op.create_index("ix_case_sessions_session_date", "case_sessions", ["session_date"])

    op.create_table(
        "case_events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "case_id",
            sa.String(36),
            sa.ForeignKey("reconciliation_cases.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("kind", sa.String(30), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actor_id", sa.String(36), nullable=True),
        sa.Column("previous_status", sa.String(20), nullable=True),
        sa.Column("new_status", sa.String(20), nullable=True),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("payload", JSONB, nullable=False, server_default="{}"),
    )
    op.create_index("ix_case_events_case_time", "case_events", ["case_id", "occurred_at"])

    op.create_table(
        "case_number_sequences",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("prefix", sa.String(10), nullable=False),
        sa.Column("year", sa.Integer, nullable=False),
        sa.Column("last_value", sa.Integer, nullable=False),
        sa.UniqueConstraint("prefix", "year", name="uq_case_number_sequences"),
    )


def downgrade() -> None:
    op.drop_table("case_number_sequences")
    op.drop_index("ix_case_events_case_time", table_name="case_events")
    op.drop_table("case_events")
    op.drop_table("case_sessions")
    op.drop_table("reconciliation_cases")
