"""
Parsers for Liquipedia MediaWiki API responses.

- opensearch results (a 4-element JSON array) -> SearchResult list
- action=parse responses (rendered page HTML) -> PlayerEarnings data
"""

import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from bs4 import BeautifulSoup, Tag

from moneyball.exceptions import ParseError

_MONEY_RE = re.compile(r"\$([0-9,]+(?:\.[0-9]+)?)")
_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")


@dataclass
class SearchResult:
    title: str
    url: str
    description: str = ""

    @property
    def page_title(self) -> str:
        """Last path segment of the page URL, as used by action=parse."""
        return self.url.rstrip("/").rsplit("/", 1)[-1]


@dataclass
class EarningsData:
    """Earnings extracted from a player's wiki page."""

    total: Optional[Decimal] = None
    by_year: dict[str, float] = field(default_factory=dict)
    tournaments: list[dict[str, Any]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.total is None and not self.by_year and not self.tournaments


def parse_money(text: Optional[str]) -> Optional[Decimal]:
    """Dollar amount in ``text`` ("$1,234.50" -> Decimal("1234.50")), or None."""
    if not text:
        return None
    match = _MONEY_RE.search(text)
    if not match:
        return None
    return Decimal(match.group(1).replace(",", ""))


def parse_search_results(data: Any) -> list[SearchResult]:
    """
    Parse an opensearch response: [term, [titles], [descriptions], [urls]].

    Anything that does not have that shape yields no results.
    """
    if not isinstance(data, list) or len(data) < 4:
        return []
    titles, descriptions, urls = data[1], data[2], data[3]
    results = []
    for index, title in enumerate(titles):
        if index >= len(urls):
            break
        description = descriptions[index] if index < len(descriptions) else ""
        results.append(SearchResult(title=title, url=urls[index], description=description or ""))
    return results


def extract_parse_html(data: Any) -> str:
    """
    Pull the rendered HTML out of an action=parse response.

    Raises:
        ParseError: The response is not shaped like {"parse": {"text": {"*": html}}}
    """
    try:
        html = data["parse"]["text"]["*"]
    except (KeyError, TypeError) as e:
        raise ParseError("Invalid API response format") from e
    if not html:
        raise ParseError("Invalid API response format")
    return html


def _heading_table(soup: BeautifulSoup, heading: str) -> Optional[Tag]:
    for h3 in soup.find_all("h3"):
        if heading in h3.get_text():
            return h3.find_next_sibling("div", class_="table-responsive")
    return None


def _rows(table: Optional[Tag]) -> list[Tag]:
    if table is None:
        return []
    return [row for row in table.find_all("tr") if row.find("td") is not None]


def _total_earnings(soup: BeautifulSoup) -> Optional[Decimal]:
    for cell in soup.select("div.infobox-cell-2"):
        if "Approx. Total Earnings:" in cell.get_text():
            value = cell.find_next_sibling()
            return parse_money(value.get_text(strip=True)) if value is not None else None
    return None


def parse_earnings(html: str) -> EarningsData:
    """Extract total, per-year and per-tournament earnings from page HTML."""
    soup = BeautifulSoup(html, "html.parser")
    earnings = EarningsData(total=_total_earnings(soup))

    for row in _rows(_heading_table(soup, "Earnings By Year")):
        cells = row.find_all("td")
        year = cells[0].get_text(strip=True)
        amount = parse_money(cells[-1].get_text(strip=True))
        if year and amount is not None:
            earnings.by_year[year] = float(amount)

    for row in _rows(_heading_table(soup, "Achievements")):
        cells = row.find_all("td")
        if len(cells) < 4:
            continue
        link = cells[2].find("a")
        tournament = link.get_text(strip=True) if link is not None else ""
        prize_text = cells[3].get_text(strip=True)
        if not tournament or not prize_text:
            continue
        prize = parse_money(prize_text)
        date_match = _DATE_RE.search(cells[0].get_text(strip=True))
        earnings.tournaments.append({
            "date": date_match.group() if date_match else None,
            "placement": cells[1].get_text(strip=True),
            "tournament": tournament,
            "prize": float(prize) if prize is not None else None,
            "team": cells[4].get_text(strip=True) if len(cells) > 4 else "",
        })

    return earnings
