"""sites, api definitions and binding records

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00

"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "0001_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _site_fk() -> sa.Column:
    return sa.Column("site_id", sa.Integer(), sa.ForeignKey("sites.id", ondelete="CASCADE"), nullable=False)


def upgrade() -> None:
    op.create_table(
        "sites",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_sites_name", "sites", ["name"], unique=True)

    op.create_table(
        "api_definitions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _site_fk(),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("url", sa.String(2000), nullable=False),
        sa.Column("method", sa.String(10), nullable=False),
        sa.Column("headers", sa.JSON(), nullable=False),
        sa.Column("params", sa.JSON(), nullable=False),
        sa.Column("body_template", sa.JSON(), nullable=True),
        sa.Column("mapping_config", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("site_id", "name", name="uq_api_definitions_site_name"),
    )
    op.create_index("ix_api_definitions_site_id", "api_definitions", ["site_id"])

    op.create_table(
        "mapping_records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _site_fk(),
        sa.Column("placeholder", sa.String(255), nullable=False),
        sa.Column("api_name", sa.String(120), nullable=False),
        sa.Column("json_path", sa.String(1000), nullable=False),
        sa.Column("pages", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_mapping_records_site_id", "mapping_records", ["site_id"])

    op.create_table(
        "action_records",
        sa.Column("seq", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("id", sa.String(64), nullable=False),
        _site_fk(),
        sa.Column("selector", sa.Text(), nullable=False),
        sa.Column("api_name", sa.String(120), nullable=False),
        sa.Column("method", sa.String(10), nullable=False),
        sa.Column("fields", sa.JSON(), nullable=False),
        sa.Column("page", sa.String(1000), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_action_records_id", "action_records", ["id"], unique=True)
    op.create_index("ix_action_records_site_id", "action_records", ["site_id"])

    op.create_table(
        "page_mappings",
        sa.Column("seq", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("id", sa.String(64), nullable=False),
        _site_fk(),
        sa.Column("page", sa.String(1000), nullable=False),
        sa.Column("api_name", sa.String(120), nullable=False),
        sa.Column("method", sa.String(10), nullable=False),
        sa.Column("field_mappings", sa.JSON(), nullable=False),
        sa.Column("submit_selector", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("site_id", "page", "api_name", name="uq_page_mappings_site_page_api"),
    )
    op.create_index("ix_page_mappings_id", "page_mappings", ["id"], unique=True)
    op.create_index("ix_page_mappings_site_id", "page_mappings", ["site_id"])


def downgrade() -> None:
    for table in ("page_mappings", "action_records", "mapping_records", "api_definitions", "sites"):
        op.drop_table(table)
