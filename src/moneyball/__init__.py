"""
Moneyball - Valorant esports analytics backend.

Keeps player, team and tournament data fresh by scraping VLR.gg and
Liquipedia on a schedule, without overwhelming either site.

Main components:
- tasks: Priority task queue, retry policy, rate limiter, cron triggers
  and the scheduler that ties them together
- scrape: VLR.gg and Liquipedia clients plus their page parsers
- db: SQLAlchemy models and the repository the scheduler queries
- web: FastAPI admin endpoints for scheduler status and manual triggers
"""

__version__ = "1.0.0"
