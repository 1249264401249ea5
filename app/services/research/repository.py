"""Storage layer for research state.

ResearchRepository wraps one AsyncSession. Each write commits and refreshes
the row so server-side timestamps are loaded before the caller reads them.
"""

from collections.abc import Iterable
from typing import Any

import structlog
from sqlalchemy import inspect, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.domain import Order, RaceEdition, RunnerResearch

logger = structlog.get_logger(__name__)


class ResearchRepository:
    """Lookups and writes for orders, race editions and runner research."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _save(self, obj: Any) -> Any:
        self.session.add(obj)
        await self.session.commit()
        await self.session.refresh(obj)
        return obj

    async def rollback(self) -> None:
        await self.session.rollback()

    async def refresh_all(self, objects: Iterable[Any]) -> None:
        """Reload persistent rows; rows discarded by a rollback are skipped."""
        for obj in objects:
            if inspect(obj).persistent:
                await self.session.refresh(obj)

    # Orders

    async def get_order(self, order_number: str) -> Order | None:
        result = await self.session.execute(
            select(Order).where(Order.order_number == order_number)
        )
        return result.scalar_one_or_none()

    async def update_order(self, order: Order, **fields: Any) -> Order:
        for key, value in fields.items():
            setattr(order, key, value)
        return await self._save(order)

    # Race editions

    async def get_race_edition(self, race_name: str, year: int) -> RaceEdition | None:
        result = await self.session.execute(
            select(RaceEdition).where(
                RaceEdition.race_name == race_name,
                RaceEdition.year == year,
            )
        )
        return result.scalar_one_or_none()

    async def get_race_edition_by_id(self, race_edition_id: int) -> RaceEdition | None:
        return await self.session.get(RaceEdition, race_edition_id)

    async def create_or_update_race_edition(
        self, race_name: str, year: int, **fields: Any
    ) -> tuple[RaceEdition, bool]:
        """
        Upsert the race edition for (race_name, year).

        Returns:
            (race_edition, created)
        """
        race_edition = await self.get_race_edition(race_name, year)
        created = race_edition is None
        if created:
            race_edition = RaceEdition(race_name=race_name, year=year)

        for key, value in fields.items():
            setattr(race_edition, key, value)

        race_edition = await self._save(race_edition)
        logger.debug(
            "race_edition_saved",
            race_edition_id=race_edition.id,
            race_name=race_name,
            year=year,
            created=created,
        )
        return race_edition, created

    async def update_race_edition(self, race_edition: RaceEdition, **fields: Any) -> RaceEdition:
        for key, value in fields.items():
            setattr(race_edition, key, value)
        return await self._save(race_edition)

    # Runner research

    async def get_runner_research(
        self, order_number: str, race_edition_id: int
    ) -> RunnerResearch | None:
        result = await self.session.execute(
            select(RunnerResearch).where(
                RunnerResearch.order_number == order_number,
                RunnerResearch.race_edition_id == race_edition_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_latest_runner_research(self, order_number: str) -> RunnerResearch | None:
        """Most recent research row for an order, across race editions."""
        result = await self.session.execute(
            select(RunnerResearch)
            .where(RunnerResearch.order_number == order_number)
            .order_by(RunnerResearch.created_at.desc(), RunnerResearch.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create_or_update_runner_research(
        self, order_number: str, race_edition_id: int, **fields: Any
    ) -> tuple[RunnerResearch, bool]:
        """
        Upsert the research row for (order_number, race_edition_id).

        Returns:
            (runner_research, created)
        """
        research = await self.get_runner_research(order_number, race_edition_id)
        created = research is None
        if created:
            research = RunnerResearch(order_number=order_number, race_edition_id=race_edition_id)

        for key, value in fields.items():
            setattr(research, key, value)

        research = await self._save(research)
        return research, created

    async def update_runner_research(self, research: RunnerResearch, **fields: Any) -> RunnerResearch:
        for key, value in fields.items():
            setattr(research, key, value)
        return await self._save(research)
