"""
HTML parsers for VLR.gg pages.

Each parser takes raw page HTML and returns plain dataclasses. A page that
lacks the structure a parser depends on raises ParseError, so the calling
task can be retried; individual malformed rows are skipped.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from bs4 import BeautifulSoup, Tag

from moneyball.exceptions import ParseError
from moneyball.scrape.parsers.player import (
    calculate_rating,
    determine_division,
    determine_playstyle,
)

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")
_TEAM_URL_RE = re.compile(r"/team/(\d+)/([^/]+)")


@dataclass
class PlayerListing:
    """One row of the /stats listing."""

    name: str
    vlr_url: Optional[str] = None
    team_name: Optional[str] = None
    team_abbreviation: Optional[str] = None
    country_name: Optional[str] = None
    country_code: Optional[str] = None
    acs: Optional[float] = None
    kd_ratio: Optional[float] = None
    adr: Optional[float] = None
    kpr: Optional[float] = None
    apr: Optional[float] = None
    fkpr: Optional[float] = None
    fdpr: Optional[float] = None
    hs_pct: Optional[float] = None
    rating: Optional[float] = None


@dataclass
class PlayerProfile:
    """Detail fields scraped from a player's profile page."""

    agent_usage: dict[str, dict[str, Any]] = field(default_factory=dict)
    playstyle: Optional[dict[str, Any]] = None
    division: str = "Unranked"
    tournament_history: list[str] = field(default_factory=list)


@dataclass
class TeamPage:
    name: str
    abbreviation: Optional[str] = None
    region: Optional[str] = None
    logo_url: Optional[str] = None


@dataclass
class EventPage:
    name: str
    dates: Optional[str] = None
    prize_pool: Optional[str] = None
    region: Optional[str] = None
    status: Optional[str] = None


def parse_number(text: Optional[str]) -> Optional[float]:
    """First number in ``text`` ("1.23", "45%", "  210 "), or None."""
    if not text:
        return None
    match = _NUMBER_RE.search(text.replace(",", ""))
    return float(match.group()) if match else None


def _text(element: Optional[Tag]) -> str:
    return element.get_text(" ", strip=True) if element is not None else ""


def _team_abbreviation(team_url: Optional[str]) -> Optional[str]:
    if not team_url:
        return None
    match = _TEAM_URL_RE.search(team_url)
    return match.group(2).upper() if match else None


def _country_code(flag: Optional[Tag]) -> Optional[str]:
    if flag is None:
        return None
    for cls in flag.get("class", []):
        if cls.startswith("mod-") and cls != "mod-flag":
            return cls[len("mod-"):]
    return None


# =============================================================================
# Stats listing
# =============================================================================

def parse_player_row(card: Tag) -> Optional[PlayerListing]:
    """Extract one player from a listing card; None for header or empty rows."""
    if card.select_one(".stats-player-country") is None:
        return None

    link = card.select_one(".mod-player a")
    name = _text(link)
    if not name:
        return None

    team_element = card.select_one(".mod-team")
    team_name = _text(team_element) or None
    team_link = team_element.select_one("a") if team_element is not None else None

    stats = [parse_number(_text(cell)) for cell in card.select(".stats-center")]
    stats += [None] * (8 - len(stats))
    acs, kd, adr, kpr, apr, fkpr, fdpr, hs_pct = stats[:8]

    return PlayerListing(
        name=name,
        vlr_url=link.get("href") if link is not None else None,
        team_name=None if team_name == "No Team" else team_name,
        team_abbreviation=_team_abbreviation(team_link.get("href") if team_link is not None else None),
        country_name=_text(card.select_one(".stats-player-country")) or None,
        country_code=_country_code(card.select_one(".mod-flag")),
        acs=acs,
        kd_ratio=kd,
        adr=adr,
        kpr=kpr,
        apr=apr,
        fkpr=fkpr,
        fdpr=fdpr,
        hs_pct=hs_pct,
        rating=calculate_rating(acs, kd, adr),
    )


def parse_player_list(html: str) -> list[PlayerListing]:
    """
    Parse a /stats listing page.

    Raises:
        ParseError: The page contains no stats cards at all
    """
    soup = BeautifulSoup(html, "html.parser")
    cards = soup.select(".wf-card")
    if not cards:
        raise ParseError("No .wf-card elements on stats page")

    players = []
    for card in cards:
        player = parse_player_row(card)
        if player is not None:
            players.append(player)
    return players


# =============================================================================
# Player profile
# =============================================================================

def parse_agent_usage(soup: BeautifulSoup) -> dict[str, dict[str, Any]]:
    usage: dict[str, dict[str, Any]] = {}
    # First row is the table header
    for row in soup.select(".agent-stats-list tr")[1:]:
        cells = row.find_all("td")
        if len(cells) < 7:
            continue
        agent = _text(cells[0])
        play_count = parse_number(_text(cells[2]))
        if not agent or not play_count:
            continue
        usage[agent] = {
            "playTime": _text(cells[1]),
            "playCount": int(play_count),
            "winRate": _text(cells[3]),
            "acs": parse_number(_text(cells[4])),
            "kd": parse_number(_text(cells[5])),
            "adr": parse_number(_text(cells[6])),
        }
    return usage


def parse_player_detail(html: str) -> PlayerProfile:
    """
    Parse a player profile page into agent usage, playstyle and division.

    Raises:
        ParseError: The page has neither an agent table nor any content cards
    """
    soup = BeautifulSoup(html, "html.parser")
    if soup.select_one(".agent-stats-list") is None and soup.select_one(".wf-card") is None:
        raise ParseError("Page does not look like a player profile")

    agent_usage = parse_agent_usage(soup)
    history = [
        name for name in (_text(el.select_one(".event-name")) for el in soup.select(".wf-card .mod-overview"))
        if name
    ]
    return PlayerProfile(
        agent_usage=agent_usage,
        playstyle=determine_playstyle(agent_usage),
        division=determine_division(history),
        tournament_history=history,
    )


# =============================================================================
# Team and event pages
# =============================================================================

def parse_team_page(html: str) -> TeamPage:
    soup = BeautifulSoup(html, "html.parser")
    name = _text(soup.select_one(".team-header-name h1"))
    if not name:
        raise ParseError("Team page has no team name header")

    logo = soup.select_one(".team-header-logo img")
    logo_url = logo.get("src") if logo is not None else None
    if logo_url and logo_url.startswith("//"):
        logo_url = "https:" + logo_url

    return TeamPage(
        name=name,
        abbreviation=_text(soup.select_one(".team-header-tag")) or None,
        region=_text(soup.select_one(".team-header-country")) or None,
        logo_url=logo_url,
    )


def _event_status(soup: BeautifulSoup) -> Optional[str]:
    label = _text(soup.select_one(".event-header .mod-status")).lower()
    for status in ("upcoming", "ongoing", "completed"):
        if status in label:
            return status
    return None


def parse_event_page(html: str) -> EventPage:
    soup = BeautifulSoup(html, "html.parser")
    name = _text(soup.select_one(".event-header .wf-title"))
    if not name:
        raise ParseError("Event page has no title")

    details: dict[str, str] = {}
    for item in soup.select(".event-desc-item"):
        label = _text(item.select_one(".event-desc-item-label")).lower()
        value = _text(item.select_one(".event-desc-item-value"))
        if label and value:
            details[label] = value

    return EventPage(
        name=name,
        dates=details.get("dates"),
        prize_pool=details.get("prize pool"),
        region=details.get("location"),
        status=_event_status(soup),
    )
