"""
Club Stability Job
==================

Scores how financially stable a club is from its league history.

SCORING:
- Base points from the tier of the club's first season
  (tiers 1-4: 20, 5: 16, 6-9: 14, 10-11: 12, 12-14: 10, 15+: 8)
- Per season, first match wins:
  champion          +7 (tier 1) down to +1 (tier 12+)
  promoted          +5 (tier 2) down to +1 (tier 10+)
  relegated         -3 if bottom of the table, else -2
  top half finish   +1
- Status: <= -5 critical, <= 0 at_risk, otherwise stable

Tiers come from the season snapshot, not the league's current tier.

Run with: python -m almanac stability:recalc
"""

import logging
from typing import Dict, Iterable, List, Optional, Protocol
from uuid import UUID

from rich.console import Console

from almanac.database import get_sync_session
from almanac.models import Club, FinishStatus, LeagueTableEntry, Season, StabilityStatus
from almanac.schemas import StabilityResult
from almanac.status import PROMOTING_STATUSES
from almanac.store import SqlAlchemyStore, Store

console = Console()
logger = logging.getLogger(__name__)

DEFAULT_TEAMS_IN_LEAGUE = 20


class StabilityRecalculator(Protocol):
    """Collaborator asked to refresh stability after an ingestion."""

    def recalculate(self, club_ids: Iterable[UUID]) -> None:
        ...


def base_points_for_tier(tier: int) -> int:
    if tier <= 4:
        return 20
    if tier == 5:
        return 16
    if tier <= 9:
        return 14
    if tier <= 11:
        return 12
    if tier <= 14:
        return 10
    return 8


def champion_bonus(tier: int) -> int:
    if tier <= 1:
        return 7
    if tier == 2:
        return 6
    if tier == 3:
        return 5
    if tier <= 5:
        return 4
    if tier <= 9:
        return 3
    if tier <= 11:
        return 2
    return 1


def promotion_bonus(tier: int) -> int:
    # Nothing to be promoted into above the top flight
    if tier <= 1:
        return 0
    if tier == 2:
        return 5
    if tier == 3:
        return 4
    if tier <= 5:
        return 3
    if tier <= 9:
        return 2
    return 1


def season_change(position: int, status: str, tier: int, teams_in_league: int) -> int:
    """Points gained or lost for one season."""
    if status == FinishStatus.CHAMPION.value or position == 1:
        return champion_bonus(tier)
    if status in {s.value for s in PROMOTING_STATUSES}:
        return promotion_bonus(tier)
    if status == FinishStatus.RELEGATED.value:
        return -3 if position == teams_in_league else -2
    if position <= teams_in_league // 2:
        return 1
    return 0


def stability_status(points: int) -> StabilityStatus:
    if points <= -5:
        return StabilityStatus.CRITICAL
    if points <= 0:
        return StabilityStatus.AT_RISK
    return StabilityStatus.STABLE


def calculate_club_stability(
    club_id: UUID,
    entries: List[LeagueTableEntry],
    seasons: Dict[UUID, Season],
) -> Optional[StabilityResult]:
    """
    Score one club from its table entries.

    Args:
        club_id: Club being scored
        entries: The club's table entries, any order
        seasons: Season records by id, for tier and team count

    Returns:
        StabilityResult, or None when the club has no seasons
    """
    if not entries:
        return None

    ordered = sorted(entries, key=lambda e: e.year)
    points = 0
    base = 0

    for index, entry in enumerate(ordered):
        season = seasons.get(entry.season_id)
        tier = season.tier if season is not None and season.tier else 1
        teams = season.number_of_teams if season is not None and season.number_of_teams else DEFAULT_TEAMS_IN_LEAGUE

        if index == 0:
            base = base_points_for_tier(tier)
            points = base

        points += season_change(entry.position, entry.status, tier, teams)

    return StabilityResult(
        club_id=club_id,
        points=points,
        status=stability_status(points).value,
        base_points=base,
    )


class TableStabilityRecalculator:
    """Recalculates stability from persisted table entries through a store."""

    def __init__(self, store: Store):
        self.store = store

    def recalculate(self, club_ids: Iterable[UUID]) -> List[StabilityResult]:
        ids = list(dict.fromkeys(club_ids))
        if not ids:
            return []

        entries = self.store.filter(LeagueTableEntry, {"club_id": ids})
        season_ids = {entry.season_id for entry in entries}
        seasons = {
            season.id: season
            for season in self.store.filter(Season, {"id": list(season_ids)})
        } if season_ids else {}

        by_club: Dict[UUID, List[LeagueTableEntry]] = {club_id: [] for club_id in ids}
        for entry in entries:
            by_club[entry.club_id].append(entry)

        results = []
        for club_id in ids:
            result = calculate_club_stability(club_id, by_club[club_id], seasons)
            if result is None:
                continue
            self.store.update(Club, club_id, {
                "stability_points": result.points,
                "stability_status": result.status,
            })
            results.append(result)

        logger.info(f"Recalculated stability for {len(results)} club(s)")
        return results


def run_stability_recalculation(nation_id: Optional[UUID] = None) -> List[StabilityResult]:
    """Recalculate stability for every club, or every club of one nation."""
    console.print("[bold blue]Recalculating club stability...[/bold blue]")

    with get_sync_session() as session:
        store = SqlAlchemyStore(session)
        criteria = {"nation_id": nation_id} if nation_id else None
        clubs = store.filter(Club, criteria)
        results = TableStabilityRecalculator(store).recalculate(club.id for club in clubs)

    at_risk = sum(1 for r in results if r.status == StabilityStatus.AT_RISK.value)
    critical = sum(1 for r in results if r.status == StabilityStatus.CRITICAL.value)

    console.print("\n[bold green]✅ Stability recalculation complete![/bold green]")
    console.print(f"  • Clubs updated: {len(results)}")
    console.print(f"  • At risk: {at_risk}")
    console.print(f"  • Critical: {critical}")
    return results
