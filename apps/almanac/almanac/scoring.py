"""
Ranking Formulas
================

Pure scoring functions over club, location and nation collections.

LOCATION TROPHY SCORE:
    trophy_score   = league_titles * 10 + domestic_cup_titles * 5 + continental_titles * 20
    activity_score = total_clubs + total_promotions   (display only)

NATION STRENGTH SCORE (clamped to 0-100):
    membership         VCC +15, CCC +5
    coefficient rank   <=5 +35, <=10 +25, <=20 +15, otherwise +8
    continental clubs  +10 per club with VCC titles, +5 per club with CCC titles
    pyramid depth      +3 * deepest league tier
    top flight size    +min(top flight teams, 20)

Nothing here reads from the database; the ranking jobs load the inputs.
"""

from statistics import mean
from typing import Any, Dict, Iterable, List, Optional, Sequence

from almanac.models import Membership
from almanac.population import PopulationEstimator
from almanac.schemas import LocationRanking, NationStrength

MISSING_POSITION = 99
RECENT_FORM_SEASONS_PER_CLUB = 3
DEFAULT_TOP_FLIGHT_TEAMS = 12
TOP_FLIGHT_CAP = 20

STRENGTH_BANDS = (
    (80, "Elite"),
    (60, "Strong"),
    (40, "Developing"),
    (20, "Emerging"),
)


def _total(clubs: Sequence[Any], field: str) -> int:
    return sum(getattr(club, field, None) or 0 for club in clubs)


# =============================================================================
# LOCATIONS
# =============================================================================

def trophy_score(league_titles: int, domestic_cup_titles: int, continental_titles: int) -> int:
    return league_titles * 10 + domestic_cup_titles * 5 + continental_titles * 20


def recent_form_score(entries: Iterable[Any], club_count: int) -> Optional[float]:
    """
    Mean finishing position over the most recent 3 * club_count entries.

    Lower is better. Entries without a position count as 99.
    """
    recent = sorted(entries, key=lambda e: e.year or "", reverse=True)
    recent = recent[:RECENT_FORM_SEASONS_PER_CLUB * club_count]
    if not recent:
        return None
    return mean(
        e.position if e.position is not None else MISSING_POSITION
        for e in recent
    )


def clubs_in_location(location: Any, clubs: Iterable[Any]) -> List[Any]:
    """Clubs whose region/district/settlement (per location type) names this location."""
    field = str(getattr(location.type, "value", location.type))
    nation_id = getattr(location, "nation_id", None)
    return [
        club for club in clubs
        if getattr(club, field, None) == location.name
        and (nation_id is None or getattr(club, "nation_id", None) in (None, nation_id))
    ]


def score_location(location: Any, clubs: Sequence[Any], entries: Iterable[Any] = ()) -> LocationRanking:
    league_titles = _total(clubs, "league_titles")
    cup_titles = _total(clubs, "domestic_cup_titles")
    continental = _total(clubs, "vcc_titles") + _total(clubs, "ccc_titles")
    promotions = _total(clubs, "promotions")

    return LocationRanking(
        location_id=getattr(location, "id", None),
        name=location.name,
        type=str(getattr(location.type, "value", location.type)),
        total_clubs=len(clubs),
        league_titles=league_titles,
        domestic_cup_titles=cup_titles,
        continental_titles=continental,
        total_promotions=promotions,
        trophy_score=trophy_score(league_titles, cup_titles, continental),
        activity_score=len(clubs) + promotions,
        recent_form=recent_form_score(entries, len(clubs)),
        population=getattr(location, "population", None),
    )


def rank_locations(
    locations: Iterable[Any],
    clubs: Sequence[Any],
    table_entries: Iterable[Any] = (),
) -> List[LocationRanking]:
    """
    Rank locations by trophy score, highest first.

    Locations without clubs are dropped. Ties keep input order.

    Args:
        locations: Records with name, type and optionally nation_id/population
        clubs: Club records or merged lineage views
        table_entries: Table entries used for recent form (matched on club_id)
    """
    entries_by_club: Dict[Any, List[Any]] = {}
    for entry in table_entries:
        entries_by_club.setdefault(entry.club_id, []).append(entry)

    rankings = []
    for location in locations:
        members = clubs_in_location(location, clubs)
        if not members:
            continue
        member_entries = []
        for club in members:
            for club_id in getattr(club, "contributing_club_ids", None) or [_club_id(club)]:
                member_entries.extend(entries_by_club.get(club_id, []))
        rankings.append(score_location(location, members, member_entries))

    return sorted(rankings, key=lambda r: r.trophy_score, reverse=True)


def _club_id(club: Any) -> Any:
    return getattr(club, "club_id", None) or getattr(club, "id", None)


# =============================================================================
# NATIONS
# =============================================================================

def strength_band(score: int) -> str:
    for threshold, band in STRENGTH_BANDS:
        if score >= threshold:
            return band
    return "Growing"


def membership_bonus(membership: Optional[str]) -> int:
    if membership == Membership.FULL.value:
        return 15
    if membership == Membership.ASSOCIATE.value:
        return 5
    return 0


def coefficient_bonus(rank: Optional[int]) -> int:
    if not rank:
        return 0
    if rank <= 5:
        return 35
    if rank <= 10:
        return 25
    if rank <= 20:
        return 15
    return 8


def max_league_tier(leagues: Iterable[Any]) -> int:
    return max([getattr(league, "tier", None) or 1 for league in leagues] + [1])


def top_flight_team_count(leagues: Iterable[Any]) -> int:
    return sum(
        league.number_of_teams or DEFAULT_TOP_FLIGHT_TEAMS
        for league in leagues
        if league.tier == 1
    )


def nation_strength(
    membership: Optional[str],
    coefficient_rank: Optional[int],
    clubs: Sequence[Any],
    leagues: Sequence[Any],
) -> NationStrength:
    """Strength score and band for one nation."""
    score = membership_bonus(membership)
    score += coefficient_bonus(coefficient_rank)
    score += 10 * sum(1 for club in clubs if (getattr(club, "vcc_titles", None) or 0) > 0)
    score += 5 * sum(1 for club in clubs if (getattr(club, "ccc_titles", None) or 0) > 0)
    score += 3 * max_league_tier(leagues)
    score += min(top_flight_team_count(leagues), TOP_FLIGHT_CAP)
    score = max(0, min(score, 100))

    return NationStrength(score=score, band=strength_band(score), coefficient_rank=coefficient_rank)


def rank_nations(
    nations: Iterable[Any],
    clubs_by_nation: Dict[Any, Sequence[Any]],
    leagues_by_nation: Dict[Any, Sequence[Any]],
    coefficient_ranks: Dict[Any, Optional[int]],
    estimator: Optional[PopulationEstimator] = None,
) -> List[NationStrength]:
    """
    Score every nation and sort by strength, strongest first.

    A population estimate is attached when an estimator is given.
    """
    results = []
    for nation in nations:
        clubs = clubs_by_nation.get(nation.id, [])
        leagues = leagues_by_nation.get(nation.id, [])
        strength = nation_strength(nation.membership, coefficient_ranks.get(nation.id), clubs, leagues)
        strength.nation_id = nation.id
        strength.name = nation.name
        if estimator is not None:
            strength.population = estimator.estimate(
                len(clubs), len(leagues), nation.membership, max_league_tier(leagues),
            )
        results.append(strength)

    return sorted(results, key=lambda s: s.score, reverse=True)


def order_by_coefficient(strengths: Iterable[NationStrength]) -> List[NationStrength]:
    """Order by coefficient rank, best first; nations without a coefficient go last."""
    return sorted(
        strengths,
        key=lambda s: s.coefficient_rank if s.coefficient_rank is not None else float("inf"),
    )
