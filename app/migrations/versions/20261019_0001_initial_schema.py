"""Initial schema for race research.

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates:
- orders: ingested line items with operator overrides
- race_editions: Tier 1 cache, unique per (race_name, year)
- runner_research: Tier 2 cache, unique per (order_number, race_edition_id)
- job_runs: task audit log
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_number", sa.String(length=100), nullable=False),
        sa.Column("parent_order_number", sa.String(length=100), nullable=True),
        sa.Column("line_item_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("channel", sa.String(length=30), nullable=False),
        sa.Column("race_name", sa.String(length=200), nullable=True),
        sa.Column("race_year", sa.Integer(), nullable=True),
        sa.Column("runner_name", sa.String(length=200), nullable=True),
        sa.Column("race_name_override", sa.String(length=200), nullable=True),
        sa.Column("year_override", sa.Integer(), nullable=True),
        sa.Column("runner_name_override", sa.String(length=200), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("researched_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_number"),
    )
    op.create_index("idx_orders_parent", "orders", ["parent_order_number"])
    op.create_index("idx_orders_status", "orders", ["status"])

    op.create_table(
        "race_editions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("race_name", sa.String(length=200), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("race_date", sa.Date(), nullable=True),
        sa.Column("location", sa.String(length=200), nullable=True),
        sa.Column("event_types", sa.JSON(), nullable=True),
        sa.Column("results_url", sa.Text(), nullable=True),
        sa.Column("results_site_type", sa.String(length=30), nullable=True),
        sa.Column("weather_temp", sa.String(length=20), nullable=True),
        sa.Column("weather_condition", sa.String(length=20), nullable=True),
        sa.Column("weather_fetched_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("race_name", "year", name="uq_race_editions_name_year"),
    )

    op.create_table(
        "runner_research",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_number", sa.String(length=100), nullable=False),
        sa.Column("race_edition_id", sa.Integer(), nullable=False),
        sa.Column("runner_name", sa.String(length=200), nullable=True),
        sa.Column("bib_number", sa.String(length=20), nullable=True),
        sa.Column("official_time", sa.String(length=20), nullable=True),
        sa.Column("official_pace", sa.String(length=20), nullable=True),
        sa.Column("event_type", sa.String(length=50), nullable=True),
        sa.Column("results_url", sa.Text(), nullable=True),
        sa.Column("year_found", sa.Integer(), nullable=True),
        sa.Column("research_status", sa.String(length=20), nullable=False),
        sa.Column("research_notes", sa.Text(), nullable=True),
        sa.Column("possible_matches", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["order_number"], ["orders.order_number"]),
        sa.ForeignKeyConstraint(["race_edition_id"], ["race_editions.id"]),
        sa.UniqueConstraint(
            "order_number", "race_edition_id", name="uq_runner_research_order_race"
        ),
    )
    op.create_index("idx_runner_research_status", "runner_research", ["research_status"])

    op.create_table(
        "job_runs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("job_name", sa.String(length=100), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("records_processed", sa.Integer(), nullable=True, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_job_runs_name_started", "job_runs", ["job_name", "started_at"])


def downgrade() -> None:
    op.drop_index("idx_job_runs_name_started", table_name="job_runs")
    op.drop_table("job_runs")
    op.drop_index("idx_runner_research_status", table_name="runner_research")
    op.drop_table("runner_research")
    op.drop_table("race_editions")
    op.drop_index("idx_orders_status", table_name="orders")
    op.drop_index("idx_orders_parent", table_name="orders")
    op.drop_table("orders")
