"""
Club Stat Accumulator
=====================

Folds one season's delta into a club's cumulative career record.

The functions here are pure: they read the current record and return the
fields to write, leaving persistence to the caller. Applying the same delta
twice double counts, so the ingestion pipeline calls `apply_delta` exactly
once per (club, season).

BEST FINISH RULE:
    A finish (position, tier) replaces the recorded best only if its tier is
    strictly better (lower number), or the tier is equal and the position is
    strictly better. A worse tier never wins, whatever the position.
"""

import logging
import re
from typing import Any, Dict, Optional

from almanac.schemas import ClubDelta

logger = logging.getLogger(__name__)

YEAR_PATTERN = re.compile(r"^\d{4}(-\d{2})?$")

# Unset tier/position compare as worse than any real value
WORST = float("inf")

CAREER_COUNTERS = (
    "league_titles",
    "lower_tier_titles",
    "seasons_played",
    "seasons_top_flight",
    "seasons_in_tfa",
    "total_wins",
    "total_draws",
    "total_losses",
    "total_goals_scored",
    "total_goals_conceded",
    "promotions",
    "relegations",
)


def is_better_finish(
    new_position: Optional[int],
    new_tier: Optional[int],
    best_position: Optional[int],
    best_tier: Optional[int],
) -> bool:
    """Return True if (new_position, new_tier) beats the recorded best finish."""
    if new_position is None:
        return False
    candidate_tier = new_tier if new_tier is not None else WORST
    current_tier = best_tier if best_tier is not None else WORST
    current_position = best_position if best_position is not None else WORST

    if candidate_tier < current_tier:
        return True
    return candidate_tier == current_tier and new_position < current_position


def is_later_season(year: str, last_season_year: Optional[str]) -> bool:
    """
    Lexicographic season-year comparison.

    Only meaningful when every year in the dataset shares one format
    ("2023-24" or "2023"); anything else is logged and compared as-is.
    """
    if not YEAR_PATTERN.match(year):
        logger.warning(f"Season year {year!r} is not YYYY or YYYY-YY; ordering may be wrong")
    if not last_season_year:
        return True
    return year > last_season_year


def append_year(years: Optional[str], year: str) -> str:
    """Append a year to a comma-joined history, keeping arrival order and repeats."""
    return f"{years}, {year}" if years else year


def apply_delta(club: Any, delta: ClubDelta) -> Dict[str, Any]:
    """
    Apply one season's delta to a club record.

    Args:
        club: Existing club record (any object exposing the career attributes)
        delta: The season contribution

    Returns:
        dict of club fields to update
    """
    def current(field: str) -> int:
        return getattr(club, field, None) or 0

    updates: Dict[str, Any] = {
        "seasons_played": current("seasons_played") + 1,
        "total_wins": current("total_wins") + delta.won,
        "total_draws": current("total_draws") + delta.drawn,
        "total_losses": current("total_losses") + delta.lost,
        "total_goals_scored": current("total_goals_scored") + delta.goals_for,
        "total_goals_conceded": current("total_goals_conceded") + delta.goals_against,
        "promotions": current("promotions") + (1 if delta.is_promoted else 0),
        "relegations": current("relegations") + (1 if delta.is_relegated else 0),
        "seasons_top_flight": current("seasons_top_flight") + (1 if delta.is_top_tier else 0),
        "seasons_in_tfa": current("seasons_in_tfa") + (1 if delta.is_lower_competition_tier else 0),
    }

    if delta.is_champion and delta.is_top_tier:
        updates["league_titles"] = current("league_titles") + 1
        updates["title_years"] = append_year(getattr(club, "title_years", None), delta.year)
    elif delta.is_champion:
        updates["lower_tier_titles"] = current("lower_tier_titles") + 1
        updates["lower_tier_title_years"] = append_year(
            getattr(club, "lower_tier_title_years", None), delta.year
        )

    if is_better_finish(
        delta.position,
        delta.tier,
        getattr(club, "best_finish", None),
        getattr(club, "best_finish_tier", None),
    ):
        updates["best_finish"] = delta.position
        updates["best_finish_tier"] = delta.tier
        updates["best_finish_year"] = delta.year

    if is_later_season(delta.year, getattr(club, "last_season_year", None)):
        updates["league_id"] = delta.league_id
        updates["last_season_year"] = delta.year

    return updates


def seed_club(delta: ClubDelta) -> Dict[str, Any]:
    """
    Career fields for a club first seen in this season.

    Equivalent to applying the delta to an empty record.
    """
    is_title = delta.is_champion and delta.is_top_tier
    is_lower_title = delta.is_champion and not delta.is_top_tier

    if not YEAR_PATTERN.match(delta.year):
        logger.warning(f"Season year {delta.year!r} is not YYYY or YYYY-YY; ordering may be wrong")

    return {
        "league_id": delta.league_id,
        "last_season_year": delta.year,
        "league_titles": 1 if is_title else 0,
        "title_years": delta.year if is_title else None,
        "lower_tier_titles": 1 if is_lower_title else 0,
        "lower_tier_title_years": delta.year if is_lower_title else None,
        "seasons_played": 1,
        "seasons_top_flight": 1 if delta.is_top_tier else 0,
        "seasons_in_tfa": 1 if delta.is_lower_competition_tier else 0,
        "total_wins": delta.won,
        "total_draws": delta.drawn,
        "total_losses": delta.lost,
        "total_goals_scored": delta.goals_for,
        "total_goals_conceded": delta.goals_against,
        "promotions": 1 if delta.is_promoted else 0,
        "relegations": 1 if delta.is_relegated else 0,
        "best_finish": delta.position,
        "best_finish_tier": delta.tier,
        "best_finish_year": delta.year,
    }


def zeroed_career() -> Dict[str, Any]:
    """Career fields of a club with no seasons, used when rebuilding from history."""
    fields: Dict[str, Any] = {name: 0 for name in CAREER_COUNTERS}
    fields.update(
        title_years=None,
        lower_tier_title_years=None,
        best_finish=None,
        best_finish_tier=None,
        best_finish_year=None,
        last_season_year=None,
    )
    return fields
