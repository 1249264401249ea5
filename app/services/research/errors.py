"""Research error taxonomy.

Single-order entry points raise these; research_batch records them per
item. An ambiguous match is a research status, not an error.
"""

from app.services.scrapers.errors import (
    NoScraperAvailable,
    RaceInfoUnavailable,
    ScraperError,
    ScraperFetchError,
)


class ResearchError(Exception):
    """Base class for research errors."""


class OrderNotFound(ResearchError):
    def __init__(self, order_number: str):
        super().__init__(f"Order not found: {order_number}")
        self.order_number = order_number


class RaceEditionNotFound(ResearchError):
    def __init__(self, race_edition_id: int):
        super().__init__(f"Race edition not found: {race_edition_id}")
        self.race_edition_id = race_edition_id


class ResearchNotFound(ResearchError):
    """Accept-match was called for an order that has never been researched."""

    def __init__(self, order_number: str):
        super().__init__(f"No research record found for order: {order_number}")
        self.order_number = order_number


class MissingRunnerName(ResearchError):
    def __init__(self, order_number: str):
        super().__init__(f"Order {order_number} is missing runner name")
        self.order_number = order_number


class MissingRaceYear(ResearchError):
    def __init__(self, order_number: str):
        super().__init__(f"Order {order_number} is missing race year")
        self.order_number = order_number


class InvalidCandidate(ResearchError):
    """An accepted candidate needs a name and at least a bib or a time."""


class InvalidOverride(ResearchError):
    """An override value that cannot be stored (e.g. a non-numeric year)."""


__all__ = [
    "InvalidCandidate",
    "InvalidOverride",
    "MissingRaceYear",
    "MissingRunnerName",
    "NoScraperAvailable",
    "OrderNotFound",
    "RaceEditionNotFound",
    "RaceInfoUnavailable",
    "ResearchError",
    "ResearchNotFound",
    "ScraperError",
    "ScraperFetchError",
]
