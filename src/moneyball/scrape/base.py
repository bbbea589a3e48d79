"""
Base HTTP client shared by the VLR.gg and Liquipedia scrapers.

Both sites serve server-rendered HTML (or MediaWiki JSON), so the clients
use Playwright's APIRequestContext rather than a full browser. Every
request first waits for a RateLimiter slot, and every transport error or
non-2xx response surfaces as TransientFetchError so the scheduler can
retry the task.

Usage:
    async with VLRScraper(repository) as scraper:
        players = await scraper.scrape_player_list(1)
"""

import logging
from typing import Any, Optional

from playwright.async_api import APIRequestContext, APIResponse, Error as PlaywrightError
from playwright.async_api import async_playwright

from moneyball.config import settings
from moneyball.exceptions import TransientFetchError
from moneyball.tasks.models import RateClass
from moneyball.tasks.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}


class BaseClient:
    """
    Rate-limited HTTP client with async context manager lifecycle.

    Subclasses set BASE_URL (used to resolve site-relative paths) and
    choose the user agent.

    Args:
        rate_limiter: Limiter consulted before every request
        user_agent: User-Agent header sent with every request
        base_url: Overrides BASE_URL
        timeout: Request timeout in milliseconds (default settings.scrape_timeout)
    """

    BASE_URL: str = ""

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        user_agent: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        self.rate_limiter = rate_limiter or RateLimiter.from_settings(settings)
        self.user_agent = user_agent or settings.scrape_user_agent
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.scrape_timeout

        # Playwright objects (initialized in __aenter__)
        self._playwright = None
        self._request: Optional[APIRequestContext] = None

    def extra_headers(self) -> dict[str, str]:
        return {}

    async def __aenter__(self) -> "BaseClient":
        self._playwright = await async_playwright().start()
        self._request = await self._playwright.request.new_context(
            extra_http_headers={
                **DEFAULT_HEADERS,
                **self.extra_headers(),
                "User-Agent": self.user_agent,
            },
            timeout=self.timeout,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Always dispose the request context and stop Playwright."""
        if self._request:
            await self._request.dispose()
            self._request = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    def url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        if not path.startswith("/"):
            path = "/" + path
        return f"{self.base_url}{path}"

    async def _get(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
        rate_class: RateClass = RateClass.GENERAL,
    ) -> APIResponse:
        if self._request is None:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        url = self.url_for(path)
        await self.rate_limiter.await_slot(rate_class)
        logger.debug("GET %s %s", url, params or "")

        try:
            response = await self._request.get(url, params=params)
        except PlaywrightError as e:
            raise TransientFetchError(f"Request to {url} failed: {e}", url=url) from e

        if not response.ok:
            raise TransientFetchError(
                f"Request to {url} returned HTTP {response.status}",
                url=url,
                status=response.status,
            )
        return response

    async def fetch_text(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
        rate_class: RateClass = RateClass.GENERAL,
    ) -> str:
        response = await self._get(path, params, rate_class)
        return await response.text()

    async def fetch_json(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
        rate_class: RateClass = RateClass.GENERAL,
    ) -> Any:
        response = await self._get(path, params, rate_class)
        try:
            return await response.json()
        except (ValueError, PlaywrightError) as e:
            raise TransientFetchError(f"Invalid JSON from {response.url}", url=response.url) from e
