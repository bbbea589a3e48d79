"""
Tests for VLRScraper and LiquipediaClient with canned responses.

The fetch methods are overridden so no Playwright context is opened; the
repository is the real SqlRepository on in-memory SQLite.
"""

import asyncio
from decimal import Decimal

import pytest

from moneyball.db.models import Player, Team
from moneyball.exceptions import TransientFetchError
from moneyball.scrape.liquipedia import LiquipediaClient
from moneyball.scrape.vlr import VLRScraper
from moneyball.tasks.models import RateClass

from test_parsers import EARNINGS_HTML, PROFILE_PAGE, STATS_PAGE


class CannedVLRScraper(VLRScraper):
    def __init__(self, repository, pages):
        super().__init__(repository)
        self.pages = pages
        self.requested = []

    async def fetch_text(self, path, params=None, rate_class=RateClass.GENERAL):
        key = (path, (params or {}).get("page"))
        self.requested.append(key)
        page = self.pages.get(key)
        if isinstance(page, Exception):
            raise page
        if page is None:
            raise TransientFetchError(f"Request to {path} returned HTTP 404", url=path, status=404)
        return page


class CannedLiquipediaClient(LiquipediaClient):
    def __init__(self, repository, responses):
        super().__init__(repository)
        self.responses = responses
        self.requested = []

    async def fetch_json(self, path, params=None, rate_class=RateClass.GENERAL):
        self.requested.append((params["action"], rate_class))
        return self.responses[params["action"]]


SEARCH_RESPONSE = [
    "TenZ",
    ["TenZ"],
    [""],
    ["https://liquipedia.net/valorant/TenZ"],
]


class TestVLRScraper:
    def test_scrape_all_players_saves_listings_and_details(self, repository, session_factory):
        scraper = CannedVLRScraper(repository, {
            ("/stats/", 1): STATS_PAGE,
            ("/player/9/tenz", None): PROFILE_PAGE,
            ("/player/10/free", None): TransientFetchError("timeout", url="/player/10/free"),
        })

        count = asyncio.run(scraper.scrape_all_players(pages=1, detailed=True))

        assert count == 2
        with session_factory() as session:
            tenz = session.query(Player).filter(Player.name == "TenZ").one()
            assert tenz.division == "T1"
            assert "Jett" in tenz.agent_usage
            free_agent = session.query(Player).filter(Player.name == "FreeAgent").one()
            assert free_agent.agent_usage is None

    def test_listing_failure_aborts_run(self, repository):
        scraper = CannedVLRScraper(repository, {("/stats/", 1): STATS_PAGE})

        with pytest.raises(TransientFetchError):
            asyncio.run(scraper.scrape_all_players(pages=2, detailed=False))

    def test_refresh_team(self, db_session, repository, session_factory):
        db_session.add(Team(id="t1", name="SEN", vlr_url="/team/2/sentinels"))
        db_session.commit()
        scraper = CannedVLRScraper(repository, {
            ("/team/2/sentinels", None): (
                '<div class="team-header-name"><h1>Sentinels</h1></div>'
                '<div class="team-header-country">United States</div>'
            ),
        })

        assert asyncio.run(scraper.refresh_team("t1")) is True
        assert asyncio.run(scraper.refresh_team("missing")) is False
        assert scraper.requested == [("/team/2/sentinels", None)]

        with session_factory() as session:
            team = session.get(Team, "t1")
            assert team.name == "Sentinels"
            assert team.region == "United States"


class TestLiquipediaClient:
    def test_process_saves_earnings(self, db_session, repository, session_factory):
        db_session.add(Player(id="p1", name="TenZ"))
        db_session.commit()
        client = CannedLiquipediaClient(repository, {
            "opensearch": SEARCH_RESPONSE,
            "parse": {"parse": {"text": {"*": EARNINGS_HTML}}},
        })

        result = asyncio.run(client.process("p1"))

        assert result.success is True
        assert result.player_name == "TenZ"
        assert result.total_earnings == Decimal("1234567")
        assert result.tournaments_count == 2
        assert result.to_dict() == {
            "success": True,
            "player_name": "TenZ",
            "total_earnings": 1234567.0,
            "tournaments_count": 2,
        }
        assert client.requested == [
            ("opensearch", RateClass.GENERAL),
            ("parse", RateClass.HEAVY),
        ]
        with session_factory() as session:
            player = session.get(Player, "p1")
            assert player.total_earnings == Decimal("1234567")
            assert player.earnings_last_updated is not None

    def test_unknown_player(self, repository):
        client = CannedLiquipediaClient(repository, {})

        result = asyncio.run(client.process("ghost"))

        assert result.success is False
        assert result.error == "Player not found: ghost"
        assert client.requested == []

    def test_no_search_results(self, db_session, repository):
        db_session.add(Player(id="p1", name="Nobody"))
        db_session.commit()
        client = CannedLiquipediaClient(repository, {"opensearch": ["Nobody", [], [], []]})

        result = asyncio.run(client.process("p1"))

        assert result.success is False
        assert result.error == "No Liquipedia page found"

    def test_unreadable_page(self, db_session, repository):
        db_session.add(Player(id="p1", name="TenZ"))
        db_session.commit()
        client = CannedLiquipediaClient(repository, {
            "opensearch": SEARCH_RESPONSE,
            "parse": {"error": {"code": "missingtitle"}},
        })

        result = asyncio.run(client.process("p1"))

        assert result.success is False
        assert result.error == "Failed to extract earnings data"

    def test_page_without_earnings(self, db_session, repository):
        db_session.add(Player(id="p1", name="TenZ"))
        db_session.commit()
        client = CannedLiquipediaClient(repository, {
            "opensearch": SEARCH_RESPONSE,
            "parse": {"parse": {"text": {"*": "<p>Stub</p>"}}},
        })

        result = asyncio.run(client.process("p1"))

        assert result.success is False
        assert result.error == "No earnings data found"
