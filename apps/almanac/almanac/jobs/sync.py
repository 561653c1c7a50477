"""
Club Career Rebuild Job
=======================

Recomputes club career counters from persisted table entries.

Used to repair clubs whose history was entered before the accumulator ran or
whose counters drifted. Entries are replayed through `apply_delta` in year
order starting from an empty career, so a rebuilt club matches what
ingesting its seasons one by one would have produced. Cup and continental
counters are not derived from league tables and are left untouched; they are
rebuilt from cup seasons by `almanac.jobs.honours`.

Run with: python -m almanac clubs:sync
"""

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

from almanac.accumulator import apply_delta, zeroed_career
from almanac.database import get_sync_session
from almanac.errors import ValidationError
from almanac.models import Club, FinishStatus, LeagueTableEntry, Season
from almanac.schemas import ClubDelta
from almanac.store import SqlAlchemyStore, Store

console = Console()
logger = logging.getLogger(__name__)


class _Career:
    """Attribute view over a field dict, so apply_delta can fold into it."""

    def __init__(self, fields: Dict[str, Any]):
        self.__dict__.update(fields)


def entry_delta(entry: LeagueTableEntry, tier: int) -> ClubDelta:
    return ClubDelta(
        club_name=entry.club_name,
        league_id=entry.league_id,
        season_id=entry.season_id,
        year=entry.year,
        tier=tier,
        position=entry.position,
        won=entry.won or 0,
        drawn=entry.drawn or 0,
        lost=entry.lost or 0,
        goals_for=entry.goals_for or 0,
        goals_against=entry.goals_against or 0,
        points=entry.points or 0,
        status=FinishStatus(entry.status or FinishStatus.NONE.value),
    )


def rebuild_career(entries: List[LeagueTableEntry], tiers: Dict[UUID, int]) -> Dict[str, Any]:
    """
    Fold table entries into a fresh career record.

    Args:
        entries: One club's table entries, any order
        tiers: Season tier snapshot by season id (missing -> 1)

    Returns:
        dict of club fields to write
    """
    fields = zeroed_career()
    for entry in sorted(entries, key=lambda e: e.year):
        delta = entry_delta(entry, tiers.get(entry.season_id, 1))
        fields.update(apply_delta(_Career(fields), delta))
    return fields


def rebuild_club_stats(store: Store, club_id: UUID) -> Optional[Club]:
    """
    Rebuild one club's career from its entries.

    Returns:
        The updated club, or None when the club has no table entries
    """
    club = store.get(Club, club_id)
    if club is None:
        raise ValidationError(f"Club {club_id} does not exist")

    entries = store.filter(LeagueTableEntry, {"club_id": club_id})
    if not entries:
        return None

    seasons = store.filter(Season, {"id": list({e.season_id for e in entries})})
    tiers = {season.id: season.tier for season in seasons}

    return store.update(Club, club_id, rebuild_career(entries, tiers))


def run_club_sync(nation_id: Optional[UUID] = None) -> Dict[str, int]:
    """
    Rebuild every club (optionally of one nation) in a single transaction.

    Returns:
        dict with updated/skipped counts
    """
    console.print("[bold blue]🔄 Rebuilding club careers from league tables...[/bold blue]")
    stats = {"updated": 0, "skipped": 0}

    with get_sync_session() as session:
        store = SqlAlchemyStore(session)
        clubs = store.filter(Club, {"nation_id": nation_id} if nation_id else None, sort="name")

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            console=console,
        ) as progress:
            task = progress.add_task("Rebuilding clubs...", total=len(clubs))

            for club in clubs:
                if rebuild_club_stats(store, club.id) is None:
                    stats["skipped"] += 1
                else:
                    stats["updated"] += 1
                progress.update(task, advance=1)

    logger.info(f"Club sync: {stats['updated']} updated, {stats['skipped']} skipped")
    console.print("\n[bold green]✅ Club sync complete![/bold green]")
    console.print(f"  • Updated: {stats['updated']}")
    console.print(f"  • Skipped (no table data): {stats['skipped']}")
    return stats
