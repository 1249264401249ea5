"""Domain models for the race research engine.

Three tables carry the research state:
- orders: one sellable line item, with ingested values and operator overrides
- race_editions: Tier 1 cache, one row per (race_name, year)
- runner_research: Tier 2 cache, one row per (order, race edition)

The effective value of an order field is its override when set, otherwise the
ingested value. Overrides are never written by the research pipeline.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin


class OrderStatus(str, Enum):
    """Order lifecycle status."""

    PENDING = "pending"
    READY = "ready"              # Results researched, ready for print
    FLAGGED = "flagged"          # Needs operator attention
    MISSING_YEAR = "missing_year"
    COMPLETED = "completed"


class ResearchStatus(str, Enum):
    """Outcome of a runner lookup within one race edition."""

    FOUND = "found"              # Terminal, cache-valid
    AMBIGUOUS = "ambiguous"      # Needs a human decision
    NOT_FOUND = "not_found"      # Retryable when the search inputs change


class Order(Base, TimestampMixin):
    """
    One sellable line item ingested from an e-commerce channel.

    Orders are created by ingestion. Research only ever sets status to
    'ready' and stamps researched_at.
    """

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_number: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    parent_order_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    line_item_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    channel: Mapped[str] = mapped_column(
        String(30), nullable=False, doc="'etsy', 'shopify', ..."
    )

    # Ingested values
    race_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    race_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    runner_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Operator overrides (null = use ingested value)
    race_name_override: Mapped[str | None] = mapped_column(String(200), nullable=True)
    year_override: Mapped[int | None] = mapped_column(Integer, nullable=True)
    runner_name_override: Mapped[str | None] = mapped_column(String(200), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), default=OrderStatus.PENDING.value, nullable=False
    )
    researched_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("idx_orders_parent", "parent_order_number"),
        Index("idx_orders_status", "status"),
    )

    @property
    def effective_race_name(self) -> str | None:
        if self.race_name_override is not None:
            return self.race_name_override
        return self.race_name

    @property
    def effective_race_year(self) -> int | None:
        if self.year_override is not None:
            return self.year_override
        return self.race_year

    @property
    def effective_runner_name(self) -> str | None:
        if self.runner_name_override is not None:
            return self.runner_name_override
        return self.runner_name

    def __repr__(self) -> str:
        return f"<Order {self.order_number} status={self.status}>"


class RaceEdition(Base, TimestampMixin):
    """
    One race in one year - the Tier 1 caching unit.

    Cache-complete once race_date and location are both set. Weather is
    tracked separately: weather_fetched_at distinguishes "never attempted"
    from "attempted, no data".
    """

    __tablename__ = "race_editions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    race_name: Mapped[str] = mapped_column(String(200), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    race_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    event_types: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    results_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    results_site_type: Mapped[str | None] = mapped_column(String(30), nullable=True)

    weather_temp: Mapped[str | None] = mapped_column(String(20), nullable=True)
    weather_condition: Mapped[str | None] = mapped_column(
        String(20), nullable=True, doc="'sunny', 'cloudy' or 'rainy'"
    )
    weather_fetched_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("race_name", "year", name="uq_race_editions_name_year"),
    )

    @property
    def is_cache_complete(self) -> bool:
        return self.race_date is not None and self.location is not None

    def __repr__(self) -> str:
        return f"<RaceEdition {self.race_name} {self.year}>"


class RunnerResearch(Base, TimestampMixin):
    """
    Resolved (or attempted) lookup of one order's runner in one race edition.

    'found' is terminal: research never calls the scraper again for the pair.
    possible_matches holds the candidates of an ambiguous search until an
    operator accepts one.
    """

    __tablename__ = "runner_research"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_number: Mapped[str] = mapped_column(
        String(100), ForeignKey("orders.order_number"), nullable=False
    )
    race_edition_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("race_editions.id"), nullable=False
    )
    runner_name: Mapped[str | None] = mapped_column(
        String(200), nullable=True, doc="Name used for the search"
    )
    bib_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    official_time: Mapped[str | None] = mapped_column(String(20), nullable=True)
    official_pace: Mapped[str | None] = mapped_column(String(20), nullable=True)
    event_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    results_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    year_found: Mapped[int | None] = mapped_column(Integer, nullable=True)
    research_status: Mapped[str] = mapped_column(String(20), nullable=False)
    research_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    possible_matches: Mapped[list[dict[str, Any]] | None] = mapped_column(
        JSON, nullable=True
    )

    __table_args__ = (
        UniqueConstraint(
            "order_number", "race_edition_id", name="uq_runner_research_order_race"
        ),
        Index("idx_runner_research_status", "research_status"),
    )

    def __repr__(self) -> str:
        return f"<RunnerResearch {self.order_number} status={self.research_status}>"


class JobRun(Base):
    """
    Task execution audit log.

    Every background research or weather task run is logged here.
    """

    __tablename__ = "job_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_name: Mapped[str] = mapped_column(String(100), nullable=False)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, doc="'running', 'success', 'failed'"
    )
    records_processed: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    job_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSON, nullable=True
    )

    __table_args__ = (Index("idx_job_runs_name_started", "job_name", "started_at"),)

    def __repr__(self) -> str:
        return f"<JobRun {self.job_name} status={self.status}>"
