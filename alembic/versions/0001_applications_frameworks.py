"""applications and frameworks tables

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

import sqlalchemy as sa
from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "frameworks",
        sa.Column("name", sa.String(255), primary_key=True),
        sa.Column("namespace_name", sa.String(255), nullable=False),
        sa.Column("app_quota_limit", sa.Integer(), nullable=False, server_default="-1"),
        sa.Column("ingress_controller", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "applications",
        sa.Column("name", sa.String(63), primary_key=True),
        sa.Column("framework", sa.String(255), nullable=False, server_default=""),
        sa.Column("spec", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index("ix_applications_framework", "applications", ["framework"])


def downgrade() -> None:
    op.drop_index("ix_applications_framework", table_name="applications")
    op.drop_table("applications")
    op.drop_table("frameworks")
