"""
Scrapers for external Valorant data sources.

- VLRScraper: player stats listings, player profiles, team and event pages
- LiquipediaClient: player earnings from the Liquipedia wiki
"""

from moneyball.scrape.base import BaseClient
from moneyball.scrape.liquipedia import LiquipediaClient
from moneyball.scrape.vlr import VLRScraper

__all__ = [
    "BaseClient",
    "LiquipediaClient",
    "VLRScraper",
]
