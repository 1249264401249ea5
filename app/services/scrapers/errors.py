"""Errors raised by the scraper layer."""


class ScraperError(Exception):
    """Base class for scraper-layer errors."""


class NoScraperAvailable(ScraperError):
    """No race site is configured for the race name; research must be manual."""

    def __init__(self, race_name: str | None, supported_races: list[str] | None = None):
        self.race_name = race_name
        self.supported_races = supported_races or []
        message = f"No scraper available for race: {race_name}"
        if self.supported_races:
            message += f". Supported races: {', '.join(self.supported_races)}"
        super().__init__(message)


class ScraperFetchError(ScraperError):
    """Network or parse failure while talking to a results site."""

    def __init__(
        self,
        message: str,
        platform: str | None = None,
        status_code: int | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.platform = platform
        self.status_code = status_code
        self.retryable = retryable


class RaceInfoUnavailable(ScraperError):
    """
    The results site could not provide race metadata.

    Always handled inside the scraper, which falls back to the computed
    race day.
    """
