"""
Parsers for scraped Valorant data.

This module contains parsers for:
- VLR.gg stats listings, player profiles, team and event pages
- Derived player attributes (rating, playstyle, division)
- Liquipedia search results and earnings tables
"""

from moneyball.scrape.parsers.liquipedia import (
    EarningsData,
    SearchResult,
    parse_earnings,
    parse_money,
    parse_search_results,
)
from moneyball.scrape.parsers.player import (
    calculate_rating,
    determine_division,
    determine_playstyle,
)
from moneyball.scrape.parsers.vlr import (
    PlayerListing,
    PlayerProfile,
    parse_player_detail,
    parse_player_list,
)

__all__ = [
    "EarningsData",
    "PlayerListing",
    "PlayerProfile",
    "SearchResult",
    "calculate_rating",
    "determine_division",
    "determine_playstyle",
    "parse_earnings",
    "parse_money",
    "parse_player_detail",
    "parse_player_list",
    "parse_search_results",
]
