"""
Derived player attributes.

Pure functions that turn scraped numbers and lists into the values stored
on a Player: the composite rating, the playstyle profile built from agent
usage, and the division inferred from tournament history.
"""

from typing import Any, Optional


# Agent -> role mapping, as listed on VLR.gg
AGENT_ROLES: dict[str, str] = {
    # Duelists
    "Jett": "Duelist",
    "Phoenix": "Duelist",
    "Raze": "Duelist",
    "Reyna": "Duelist",
    "Yoru": "Duelist",
    "Neon": "Duelist",
    "ISO": "Duelist",
    "Waylay": "Duelist",
    # Controllers
    "Brimstone": "Controller",
    "Omen": "Controller",
    "Viper": "Controller",
    "Astra": "Controller",
    "Harbor": "Controller",
    "Clove": "Controller",
    # Initiators
    "Sova": "Initiator",
    "Breach": "Initiator",
    "Skye": "Initiator",
    "KAY/O": "Initiator",
    "Fade": "Initiator",
    "Gekko": "Initiator",
    # Sentinels
    "Killjoy": "Sentinel",
    "Cypher": "Sentinel",
    "Sage": "Sentinel",
    "Chamber": "Sentinel",
    "Deadlock": "Sentinel",
}

ROLES = ("Duelist", "Controller", "Initiator", "Sentinel")

# Tournament name keywords per division, checked T1 first
DIVISION_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("T1", ("VCT", "Masters", "Champions", "LOCK//IN", "Challengers", "VALORANT Champions")),
    ("T2", ("Challengers Ascension", "Ascension", "Challengers League", "Contenders")),
    ("T3", ("Game Changers", "GC", "Rising", "Valorant Regional League")),
    ("T4", ("Collegiate", "University", "College", "Campus")),
)


def calculate_rating(
    acs: Optional[float],
    kd: Optional[float],
    adr: Optional[float],
) -> Optional[float]:
    """
    Composite rating from the three headline stats.

    rating = ACS/200 * 0.4 + K/D * 0.35 + ADR/150 * 0.25, rounded to two
    decimals. Returns None if any stat is missing or zero.
    """
    if not acs or not kd or not adr:
        return None
    rating = (acs / 200 * 0.4) + (kd * 0.35) + (adr / 150 * 0.25)
    return round(rating, 2)


def determine_playstyle(agent_usage: dict[str, dict[str, Any]]) -> Optional[dict[str, Any]]:
    """
    Build a playstyle profile from per-agent play counts.

    Args:
        agent_usage: Agent name -> stats dict containing at least "playCount"

    Returns:
        {"primary_roles": [...], "traits": [...], "role_percentages": {...}},
        or None when the player has no recorded plays
    """
    role_counts = {role: 0 for role in ROLES}
    total_plays = 0
    for agent, stats in agent_usage.items():
        plays = int(stats.get("playCount") or 0)
        role = AGENT_ROLES.get(agent)
        if role is not None:
            role_counts[role] += plays
        total_plays += plays

    if total_plays == 0:
        return None

    percentages = {
        role: round(count / total_plays * 100) for role, count in role_counts.items()
    }

    ranked = sorted(percentages.items(), key=lambda item: item[1], reverse=True)
    primary_roles = [f"{role} ({pct}%)" for role, pct in ranked if pct > 20]

    traits = []
    if percentages["Controller"] > 40:
        traits.append("Potential IGL")
    if percentages["Initiator"] + percentages["Sentinel"] > 60:
        traits.append("Support-oriented")
    if percentages["Duelist"] > 50:
        traits.append("Entry Fragger")
    spread = max(percentages.values()) - min(percentages.values())
    if spread < 30 and all(pct > 15 for pct in percentages.values()):
        traits.append("Flex Player")

    return {
        "primary_roles": primary_roles,
        "traits": traits,
        "role_percentages": percentages,
    }


def determine_division(tournament_history: list[str]) -> str:
    """
    Infer a player's division from the events they played.

    Events are checked in history order; the first one matching any tier's
    keywords decides. Players with no matching event are "Unranked".
    """
    for tournament in tournament_history:
        for division, keywords in DIVISION_KEYWORDS:
            if any(keyword in tournament for keyword in keywords):
                return division
    return "Unranked"
