"""Results platform scrapers, keyed by the platform identifier used in races.yaml."""

from app.services.scrapers.platforms.mika import MikaTimingScraper
from app.services.scrapers.platforms.mychiptime import MyChipTimeScraper
from app.services.scrapers.platforms.myrace import MyRaceScraper
from app.services.scrapers.platforms.nyrr import NYRRScraper
from app.services.scrapers.platforms.rtrt import RTRTScraper
from app.services.scrapers.platforms.runsignup import RunSignUpScraper

PLATFORMS = {
    NYRRScraper.platform: NYRRScraper,
    MikaTimingScraper.platform: MikaTimingScraper,
    RTRTScraper.platform: RTRTScraper,
    MyRaceScraper.platform: MyRaceScraper,
    RunSignUpScraper.platform: RunSignUpScraper,
    MyChipTimeScraper.platform: MyChipTimeScraper,
}

__all__ = [
    "PLATFORMS",
    "MikaTimingScraper",
    "MyChipTimeScraper",
    "MyRaceScraper",
    "NYRRScraper",
    "RTRTScraper",
    "RunSignUpScraper",
]
