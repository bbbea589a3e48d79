"""
Liquipedia earnings client.

Looks a player up on the Liquipedia Valorant wiki in three steps:
1. opensearch on the player's name (general rate class)
2. action=parse of the best match's page (heavy rate class; Liquipedia asks
   for at most one parse request every 30 seconds)
3. extraction of the earnings infobox and tables

Requests carry an identifying User-Agent as required by the Liquipedia API
terms of use.
"""

import logging
from typing import Optional

from moneyball.config import settings
from moneyball.exceptions import ParseError
from moneyball.scrape.base import BaseClient
from moneyball.scrape.parsers.liquipedia import (
    EarningsData,
    SearchResult,
    extract_parse_html,
    parse_earnings,
    parse_search_results,
)
from moneyball.tasks.models import RateClass
from moneyball.tasks.ports import EarningsResult
from moneyball.tasks.rate_limit import RateLimiter

logger = logging.getLogger(__name__)


class LiquipediaClient(BaseClient):
    """
    Implements the scheduler's EarningsClient contract.

    Args:
        repository: Provides player names and stores earnings
        rate_limiter: Limiter shared by all Liquipedia requests
    """

    BASE_URL = settings.liquipedia_base_url

    def __init__(
        self,
        repository,
        rate_limiter: Optional[RateLimiter] = None,
        api_url: Optional[str] = None,
    ):
        super().__init__(
            rate_limiter=rate_limiter,
            user_agent=settings.liquipedia_user_agent,
        )
        self.repository = repository
        self.api_url = api_url or settings.liquipedia_api_url

    def extra_headers(self) -> dict[str, str]:
        return {"Accept-Encoding": "gzip"}

    async def search_player(self, player_name: str) -> list[SearchResult]:
        data = await self.fetch_json(
            self.api_url,
            params={
                "action": "opensearch",
                "search": player_name,
                "limit": 10,
                "namespace": 0,
                "format": "json",
            },
            rate_class=RateClass.GENERAL,
        )
        return parse_search_results(data)

    async def get_player_earnings(self, result: SearchResult) -> EarningsData:
        """
        Fetch and parse the earnings on a player's wiki page.

        Raises:
            ParseError: The parse API response had no page HTML
        """
        data = await self.fetch_json(
            self.api_url,
            params={
                "action": "parse",
                "page": result.page_title,
                "prop": "text",
                "format": "json",
            },
            rate_class=RateClass.HEAVY,
        )
        return parse_earnings(extract_parse_html(data))

    async def process(self, player_id: str) -> EarningsResult:
        """
        Find a player's wiki page and store their earnings.

        Lookup misses come back as ``success=False``; fetch errors propagate
        so the scheduler can retry the task.
        """
        player = self.repository.get_player(player_id)
        if player is None:
            return EarningsResult(success=False, error=f"Player not found: {player_id}")

        logger.info("Processing earnings for player: %s", player.name)
        results = await self.search_player(player.name)
        if not results:
            logger.info("No Liquipedia results found for player: %s", player.name)
            return EarningsResult(success=False, player_name=player.name, error="No Liquipedia page found")

        try:
            earnings = await self.get_player_earnings(results[0])
        except ParseError as e:
            logger.warning("Could not read Liquipedia page %s: %s", results[0].url, e)
            return EarningsResult(success=False, player_name=player.name, error="Failed to extract earnings data")

        if earnings.is_empty:
            return EarningsResult(success=False, player_name=player.name, error="No earnings data found")

        if not self.repository.save_player_earnings(
            player_id,
            total_earnings=earnings.total,
            earnings_by_year=earnings.by_year,
            tournament_earnings=earnings.tournaments,
        ):
            return EarningsResult(
                success=False,
                player_name=player.name,
                error="Failed to update player earnings in database",
            )

        return EarningsResult(
            success=True,
            player_name=player.name,
            total_earnings=earnings.total,
            tournaments_count=len(earnings.tournaments),
        )
