"""
Ranking Jobs
============

Loads clubs, locations, leagues and coefficients through a store, merges each
club's lineage and hands the result to the pure formulas in almanac.scoring.

Run with:
    python -m almanac rankings:locations --type region
    python -m almanac rankings:nations
"""

import logging
from typing import Dict, List, Optional
from uuid import UUID

from rich.console import Console
from rich.table import Table

from almanac.database import get_sync_session
from almanac.lineage import resolve_lineage
from almanac.models import Club, CountryCoefficient, League, LeagueTableEntry, Location, Nation
from almanac.population import NationPopulationEstimator, PopulationEstimator
from almanac.schemas import LocationRanking, MergedClubStats, NationStrength
from almanac.scoring import order_by_coefficient, rank_locations, rank_nations
from almanac.store import SqlAlchemyStore, Store

console = Console()
logger = logging.getLogger(__name__)


def merged_clubs(store: Store, nation_id: Optional[UUID] = None) -> List[MergedClubStats]:
    """Lineage-merged view of every club known under its current name."""
    criteria = {"current_name_club_id": None}
    if nation_id is not None:
        criteria["nation_id"] = nation_id
    return [resolve_lineage(store, club) for club in store.filter(Club, criteria, sort="name")]


def latest_coefficient_ranks(store: Store) -> Dict[UUID, Optional[int]]:
    """Most recent coefficient rank per nation."""
    ranks: Dict[UUID, Optional[int]] = {}
    for coefficient in store.filter(CountryCoefficient, sort="-season"):
        ranks.setdefault(coefficient.nation_id, coefficient.rank)
    return ranks


def compute_location_rankings(
    store: Store,
    nation_id: Optional[UUID] = None,
    location_type: Optional[str] = None,
) -> List[LocationRanking]:
    criteria = {}
    if nation_id is not None:
        criteria["nation_id"] = nation_id
    if location_type is not None:
        criteria["type"] = location_type

    locations = store.filter(Location, criteria, sort="name")
    clubs = merged_clubs(store, nation_id)

    club_ids = [club_id for club in clubs for club_id in club.contributing_club_ids]
    entries = store.filter(LeagueTableEntry, {"club_id": club_ids}) if club_ids else []

    rankings = rank_locations(locations, clubs, entries)
    logger.info(f"Ranked {len(rankings)} of {len(locations)} location(s)")
    return rankings


def compute_nation_rankings(
    store: Store,
    by_coefficient: bool = False,
    estimator: Optional[PopulationEstimator] = None,
) -> List[NationStrength]:
    nations = store.filter(Nation, sort="name")

    clubs_by_nation: Dict[UUID, List[MergedClubStats]] = {}
    for club in merged_clubs(store):
        clubs_by_nation.setdefault(club.nation_id, []).append(club)

    leagues_by_nation: Dict[UUID, List[League]] = {}
    for league in store.filter(League):
        leagues_by_nation.setdefault(league.nation_id, []).append(league)

    strengths = rank_nations(
        nations,
        clubs_by_nation,
        leagues_by_nation,
        latest_coefficient_ranks(store),
        estimator=estimator if estimator is not None else NationPopulationEstimator(),
    )
    return order_by_coefficient(strengths) if by_coefficient else strengths


# =============================================================================
# RUNNERS
# =============================================================================

def run_location_rankings(
    nation_id: Optional[UUID] = None,
    location_type: Optional[str] = None,
    limit: int = 20,
) -> List[LocationRanking]:
    with get_sync_session() as session:
        rankings = compute_location_rankings(SqlAlchemyStore(session), nation_id, location_type)

    if not rankings:
        console.print("[yellow]No locations with clubs found.[/yellow]")
        return rankings

    table = Table(title="Location Trophy Rankings")
    table.add_column("#", justify="right", width=3)
    table.add_column("Location", style="cyan")
    table.add_column("Type")
    table.add_column("Clubs", justify="right")
    table.add_column("League", justify="right")
    table.add_column("Cup", justify="right")
    table.add_column("Continental", justify="right")
    table.add_column("Trophy Score", justify="right", style="green")
    table.add_column("Activity", justify="right")
    table.add_column("Recent Form", justify="right")

    for i, ranking in enumerate(rankings[:limit], 1):
        table.add_row(
            str(i),
            ranking.name,
            ranking.type,
            str(ranking.total_clubs),
            str(ranking.league_titles),
            str(ranking.domestic_cup_titles),
            str(ranking.continental_titles),
            str(ranking.trophy_score),
            str(ranking.activity_score),
            f"{ranking.recent_form:.1f}" if ranking.recent_form is not None else "-",
        )

    console.print(table)
    return rankings


def run_nation_rankings(by_coefficient: bool = False) -> List[NationStrength]:
    with get_sync_session() as session:
        strengths = compute_nation_rankings(SqlAlchemyStore(session), by_coefficient=by_coefficient)

    if not strengths:
        console.print("[yellow]No nations found.[/yellow]")
        return strengths

    table = Table(title="Nation Strength")
    table.add_column("#", justify="right", width=3)
    table.add_column("Nation", style="cyan")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Band")
    table.add_column("Coefficient", justify="right")
    table.add_column("Population", justify="right")

    for i, strength in enumerate(strengths, 1):
        band_style = {
            "Elite": "bold yellow",
            "Strong": "green",
            "Developing": "blue",
            "Emerging": "magenta",
        }.get(strength.band, "dim")

        table.add_row(
            str(i),
            strength.name,
            str(strength.score),
            f"[{band_style}]{strength.band}[/]",
            str(strength.coefficient_rank) if strength.coefficient_rank is not None else "-",
            strength.population.display if strength.population else "-",
        )

    console.print(table)
    return strengths
