"""hr requests + approvals + audit

Revision ID: 4e7a91c2d0b3
Revises:
Create Date: 2025-11-03 09:12:44.518302
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "4e7a91c2d0b3"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(bind, name: str) -> bool:
    insp = sa.inspect(bind)
    return name in insp.get_table_names()


def _index_exists(bind, table: str, name: str) -> bool:
    insp = sa.inspect(bind)
    for ix in insp.get_indexes(table_name=table):
        if ix.get("name") in {name, op.f(name)}:
            return True
    return False


def upgrade() -> None:
    """Create required tables/indexes if they don't already exist."""
    bind = op.get_bind()

    # ---- HR REQUESTS ----
    if not _table_exists(bind, "hr_requests"):
        op.create_table(
            "hr_requests",
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("owner_staff_id", sa.String(length=255), nullable=False),
            sa.Column("kind", sa.String(length=16), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("amount", sa.Numeric(12, 2), nullable=True),
            sa.Column("start_date", sa.Date(), nullable=True),
            sa.Column("end_date", sa.Date(), nullable=True),
            sa.Column("status", sa.String(length=32), nullable=False),
            sa.Column("owner_signature", sa.Text(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint("id", name=op.f("hr_requests_pkey")),
        )
    for col in ("id", "owner_staff_id", "status"):
        if not _index_exists(bind, "hr_requests", f"ix_hr_requests_{col}"):
            op.create_index(op.f(f"ix_hr_requests_{col}"), "hr_requests", [col], unique=False)

    # ---- APPROVAL LEDGER ----
    if not _table_exists(bind, "hr_request_approvals"):
        op.create_table(
            "hr_request_approvals",
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("request_id", sa.Integer(), nullable=False),
            sa.Column("approver_id", sa.String(length=255), nullable=False),
            sa.Column("stage", sa.String(length=32), nullable=False),
            sa.Column("decision", sa.String(length=16), nullable=False),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("signature", sa.Text(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["request_id"], ["hr_requests.id"], name=op.f("hr_request_approvals_request_id_fkey")),
            sa.PrimaryKeyConstraint("id", name=op.f("hr_request_approvals_pkey")),
            # one decision per stage; concurrent deciders collide here
            sa.UniqueConstraint("request_id", "stage", name="uq_hr_request_approvals_request_stage"),
        )
    if not _index_exists(bind, "hr_request_approvals", "ix_hr_request_approvals_request_id"):
        op.create_index(op.f("ix_hr_request_approvals_request_id"), "hr_request_approvals", ["request_id"], unique=False)

    # ---- AUDIT LOG ----
    if not _table_exists(bind, "audit_log"):
        op.create_table(
            "audit_log",
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("action", sa.String(length=128), nullable=True),
            sa.Column("request_id", sa.Integer(), nullable=True),
            sa.Column("actor", sa.String(length=255), nullable=True),
            sa.Column("details", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint("id", name=op.f("audit_log_pkey")),
        )
    if not _index_exists(bind, "audit_log", "ix_audit_log_request_id"):
        op.create_index(op.f("ix_audit_log_request_id"), "audit_log", ["request_id"], unique=False)
    if not _index_exists(bind, "audit_log", "ix_audit_log_action"):
        op.create_index(op.f("ix_audit_log_action"), "audit_log", ["action"], unique=False)


def downgrade() -> None:
    """Drop the same objects to roll back this revision."""
    # Drop in reverse dependency order
    op.drop_index(op.f("ix_audit_log_action"), table_name="audit_log")
    op.drop_index(op.f("ix_audit_log_request_id"), table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_index(op.f("ix_hr_request_approvals_request_id"), table_name="hr_request_approvals")
    op.drop_table("hr_request_approvals")
    for col in ("status", "owner_staff_id", "id"):
        op.drop_index(op.f(f"ix_hr_requests_{col}"), table_name="hr_requests")
    op.drop_table("hr_requests")
