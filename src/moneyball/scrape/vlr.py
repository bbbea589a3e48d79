"""
VLR.gg scraper.

Implements the scheduler's Extractor contract: bulk scrapes of the stats
listing, detailed player profiles, and team/event page refreshes. HTML
parsing lives in moneyball.scrape.parsers.vlr; this module only fetches
pages and writes the results through the repository.
"""

import logging
from typing import Optional

from moneyball.config import settings
from moneyball.exceptions import ParseError, TransientFetchError
from moneyball.scrape.base import BaseClient
from moneyball.scrape.parsers.vlr import (
    PlayerListing,
    PlayerProfile,
    parse_event_page,
    parse_player_detail,
    parse_player_list,
    parse_team_page,
)
from moneyball.tasks.rate_limit import RateLimiter

logger = logging.getLogger(__name__)


class VLRScraper(BaseClient):
    """
    Scraper for vlr.gg.

    Args:
        repository: SqlRepository (or compatible) used to persist results
        rate_limiter: Limiter shared by all VLR requests

    Usage:
        async with VLRScraper(repository) as scraper:
            count = await scraper.scrape_all_players(pages=3, detailed=False)
    """

    BASE_URL = settings.vlr_base_url

    def __init__(self, repository, rate_limiter: Optional[RateLimiter] = None, base_url: Optional[str] = None):
        super().__init__(
            rate_limiter=rate_limiter,
            user_agent=settings.scrape_user_agent,
            base_url=base_url,
        )
        self.repository = repository

    def extra_headers(self) -> dict[str, str]:
        return {
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
            "Cache-Control": "max-age=0",
        }

    # =========================================================================
    # Players
    # =========================================================================

    async def scrape_player_list(self, page_number: int = 1) -> list[PlayerListing]:
        logger.info("Scraping player list page %d...", page_number)
        html = await self.fetch_text("/stats/", params={"page": page_number})
        players = parse_player_list(html)
        logger.info("Found %d players on page %d", len(players), page_number)
        return players

    async def scrape_player_detail(self, player_url: str) -> PlayerProfile:
        logger.debug("Scraping player details from %s", player_url)
        html = await self.fetch_text(player_url)
        return parse_player_detail(html)

    async def scrape_and_save(self, player_id: str, player_url: str) -> bool:
        """Scrape one profile and store its detail fields. Fetch/parse errors propagate."""
        profile = await self.scrape_player_detail(player_url)
        return self.repository.save_player_details(
            player_id,
            agent_usage=profile.agent_usage,
            playstyle=profile.playstyle,
            division=profile.division,
            tournament_history=profile.tournament_history,
        )

    async def scrape_all_players(self, pages: int = 5, detailed: bool = True) -> int:
        """
        Scrape ``pages`` listing pages, save every player, and optionally
        scrape each saved player's profile.

        A failing profile is logged and skipped; a failing listing page
        aborts the run.

        Returns:
            Number of players found on the listing pages
        """
        listings: list[PlayerListing] = []
        for page in range(1, pages + 1):
            listings.extend(await self.scrape_player_list(page))

        logger.info("Saving %d players to database...", len(listings))
        saved = self.repository.upsert_players(listings)

        if detailed:
            logger.info("Starting detailed player information scrape...")
            scraped = 0
            for player in saved:
                if not player.source_url:
                    continue
                try:
                    await self.scrape_and_save(player.id, player.source_url)
                except (TransientFetchError, ParseError):
                    logger.exception("Error saving player details for %s", player.source_url)
                    continue
                scraped += 1
                if scraped % 10 == 0:
                    logger.info("Scraped detailed information for %d/%d players", scraped, len(saved))
            logger.info("Completed detailed scrape for %d players", scraped)

        return len(listings)

    # =========================================================================
    # Teams and tournaments
    # =========================================================================

    async def refresh_team(self, team_id: str) -> bool:
        team = self.repository.get_team(team_id)
        if team is None:
            logger.warning("Team not found: %s", team_id)
            return False

        html = await self.fetch_text(team.source_url or f"/team/{team_id}")
        page = parse_team_page(html)
        return self.repository.save_team(
            team_id,
            name=page.name,
            abbreviation=page.abbreviation,
            region=page.region,
            logo_url=page.logo_url,
        )

    async def refresh_tournament(self, tournament_id: str) -> bool:
        tournament = self.repository.get_tournament(tournament_id)
        if tournament is None:
            logger.warning("Tournament not found: %s", tournament_id)
            return False

        html = await self.fetch_text(tournament.source_url or f"/event/{tournament_id}")
        page = parse_event_page(html)
        return self.repository.save_tournament(
            tournament_id,
            name=page.name,
            dates=page.dates,
            prize_pool=page.prize_pool,
            region=page.region,
            status=page.status,
        )
