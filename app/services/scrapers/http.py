"""HTTP access to results sites.

One ScraperHttp is shared by every scraper built during a unit of work.
It applies the per-platform rate limit and turns transport failures and
non-2xx responses into ScraperFetchError. There is no retry here: a failed
call surfaces to the caller, scoped to the order being researched.
"""

from typing import Any

import httpx
import structlog

from app.config import get_settings
from app.services.scrapers.errors import ScraperFetchError
from app.services.scrapers.rate_limiter import ScraperRateLimiter

logger = structlog.get_logger(__name__)


class ScraperHttp:
    """Rate-limited async HTTP client for scrapers."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        rate_limiter: ScraperRateLimiter | None = None,
        user_agent: str | None = None,
        timeout: float | None = None,
    ):
        """
        Initialize the client.

        Args:
            http_client: Optional pre-built httpx client (tests inject a mock transport)
            rate_limiter: Optional distributed rate limiter
            user_agent: Override for the configured User-Agent
            timeout: Override for the configured per-request timeout
        """
        settings = get_settings()
        self.user_agent = user_agent or settings.scraper_user_agent
        self.timeout = timeout or settings.scraper_timeout_seconds
        self.rate_limiter = rate_limiter
        self._http_client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self) -> "ScraperHttp":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": self.user_agent},
            )
            self._owns_client = True
        return self._http_client

    async def request(
        self,
        platform: str,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Send a request to a results site.

        Raises:
            ScraperFetchError: On timeout, connection failure or non-2xx status
        """
        if self.rate_limiter:
            await self.rate_limiter.wait_if_needed(platform)

        headers = {"User-Agent": self.user_agent, **kwargs.pop("headers", {})}
        client = self._get_client()

        try:
            response = await client.request(method, url, headers=headers, **kwargs)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            logger.warning("scraper_request_timeout", platform=platform, url=url)
            raise ScraperFetchError(
                f"Request timeout: {url}", platform=platform, retryable=True
            ) from e
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.warning(
                "scraper_http_error",
                platform=platform,
                url=url,
                status_code=status_code,
                response_text=e.response.text[:500] if e.response.text else "",
            )
            raise ScraperFetchError(
                f"{platform} returned HTTP {status_code}",
                platform=platform,
                status_code=status_code,
                retryable=status_code == 429 or status_code >= 500,
            ) from e
        except httpx.HTTPError as e:
            logger.warning("scraper_transport_error", platform=platform, url=url, error=str(e))
            raise ScraperFetchError(
                f"Request failed: {e}", platform=platform, retryable=True
            ) from e

        logger.debug(
            "scraper_response",
            platform=platform,
            url=url,
            status_code=response.status_code,
        )
        return response

    async def get_json(self, platform: str, url: str, **kwargs: Any) -> Any:
        response = await self.request(platform, "GET", url, **kwargs)
        return _decode_json(platform, response)

    async def post_json(self, platform: str, url: str, payload: dict[str, Any]) -> Any:
        response = await self.request(platform, "POST", url, json=payload)
        return _decode_json(platform, response)

    async def post_form(self, platform: str, url: str, form: dict[str, str]) -> Any:
        response = await self.request(platform, "POST", url, data=form)
        return _decode_json(platform, response)

    async def get_text(self, platform: str, url: str, **kwargs: Any) -> str:
        response = await self.request(platform, "GET", url, **kwargs)
        return response.text


def _decode_json(platform: str, response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise ScraperFetchError(
            f"{platform} returned a non-JSON body", platform=platform
        ) from e


def build_scraper_http(redis_client=None) -> ScraperHttp:
    """Build a ScraperHttp with the configured rate limit when Redis is available."""
    settings = get_settings()
    rate_limiter = None
    if redis_client is not None:
        rate_limiter = ScraperRateLimiter(
            redis_client,
            rate=settings.scraper_rate_per_second,
            burst=settings.scraper_burst,
        )
    return ScraperHttp(rate_limiter=rate_limiter)
