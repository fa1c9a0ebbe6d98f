"""Initial schema: staff directory, messenger links, problem orders, audit log.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from __future__ import annotations

from typing import Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, tuple[str, ...], None] = None
depends_on: Union[str, tuple[str, ...], None] = None


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    # ── Standalone tables (no FKs) ─────────────────────────────────────

    op.create_table(
        "audit_log",
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("actor_id", sa.String(100), comment="Messenger user ID or 'system'"),
        sa.Column("actor_role", sa.String(50), comment="user, system, bot"),
        sa.Column("data", postgresql.JSONB(astext_type=sa.Text())),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_log_event_type", "audit_log", ["event_type"])

    op.create_table(
        "staff",
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("phone_number", sa.String(20), comment="11 digits starting with 7, no plus sign"),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("staff_type", sa.String(30), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_staff_phone_number", "staff", ["phone_number"])

    op.create_table(
        "problem_orders",
        sa.Column("order_id", sa.String(64), nullable=False),
        sa.Column("courier_comment", sa.Text()),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_problem_orders_order_id", "problem_orders", ["order_id"], unique=True)

    op.create_table(
        "problem_order_photos",
        sa.Column("order_id", sa.String(64), nullable=False),
        sa.Column("url", sa.String(1024), nullable=False),
        sa.Column("index", sa.Integer(), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_id", "index", name="uq_problem_order_photo_index"),
    )
    op.create_index("ix_problem_order_photos_order_id", "problem_order_photos", ["order_id"])

    # ── Dependent tables ───────────────────────────────────────────────

    op.create_table(
        "staff_messenger_links",
        sa.Column("staff_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("messenger_user_id", sa.BigInteger(), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["staff_id"], ["staff.id"]),
        sa.UniqueConstraint("staff_id"),
    )
    op.create_index(
        "ix_staff_messenger_links_messenger_user_id",
        "staff_messenger_links",
        ["messenger_user_id"],
        unique=True,
    )


def downgrade() -> None:
    # Drop in reverse dependency order
    op.drop_table("staff_messenger_links")
    op.drop_table("problem_order_photos")
    op.drop_table("problem_orders")
    op.drop_table("staff")
    op.drop_table("audit_log")
