"""Units and unit managers, for group chat set-up.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from __future__ import annotations

from typing import Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, tuple[str, ...], None] = None
depends_on: Union[str, tuple[str, ...], None] = None


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "units",
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("supply_chat_id", sa.BigInteger()),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("supply_chat_id"),
    )

    op.create_table(
        "staff_units",
        sa.Column("staff_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("unit_id", postgresql.UUID(as_uuid=True), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["staff_id"], ["staff.id"]),
        sa.ForeignKeyConstraint(["unit_id"], ["units.id"]),
        sa.UniqueConstraint("staff_id", "unit_id", name="uq_staff_unit"),
    )
    op.create_index("ix_staff_units_staff_id", "staff_units", ["staff_id"])
    op.create_index("ix_staff_units_unit_id", "staff_units", ["unit_id"])


def downgrade() -> None:
    op.drop_table("staff_units")
    op.drop_table("units")
