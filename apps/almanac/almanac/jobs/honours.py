"""
Cup Honours Job
===============

Records cup seasons and rebuilds the cup and continental honours of clubs
from them:
- domestic_cup_*: main domestic cups of the club's nation
- vcc_* / ccc_*: the two continental competitions

Honours are always rebuilt from every recorded cup season rather than
incremented, so the job can be re-run at any time. Club references are
resolved by id when one is recorded, otherwise by case-insensitive name
(within the cup's nation for domestic cups, across all nations for
continental ones). Names that match no club are skipped and reported.

Run with:
    python -m almanac cup:ingest cup-season.json
    python -m almanac honours:sync
"""

import logging
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from rich.console import Console

from almanac.database import get_sync_session
from almanac.errors import ValidationError
from almanac.honours import FINAL, collect_honours, honours_fields
from almanac.jobs.ingest import ClubNameIndex, normalize_name
from almanac.models import Club, CompetitionKind, Cup, CupMatch, CupSeason
from almanac.schemas import CupIngestionResult, CupSeasonSubmission, HonoursRecord
from almanac.store import SqlAlchemyStore, Store

console = Console()
logger = logging.getLogger(__name__)


# =============================================================================
# CLUB RESOLUTION
# =============================================================================

class CupClubResolver:
    """
    Resolves cup references to clubs.

    Domestic cups only match clubs of the cup's nation; continental cups match
    any club. An explicit club id wins over the name.
    """

    def __init__(self, clubs: List[Club], cups: List[Cup]):
        self._by_id = {club.id: club for club in clubs}
        self._all = ClubNameIndex(clubs)
        self._by_nation: Dict[UUID, ClubNameIndex] = {}
        grouped: Dict[UUID, List[Club]] = defaultdict(list)
        for club in clubs:
            grouped[club.nation_id].append(club)
        for nation_id, nation_clubs in grouped.items():
            self._by_nation[nation_id] = ClubNameIndex(nation_clubs)
        self._cup_nation = {cup.id: cup.nation_id for cup in cups}

    def resolve_for_cup(self, cup_id: UUID, name: Optional[str], club_id: Optional[UUID] = None) -> Optional[Club]:
        if club_id is not None and club_id in self._by_id:
            return self._by_id[club_id]
        if not name:
            return None
        nation_id = self._cup_nation.get(cup_id)
        if nation_id is None:
            return self._all.resolve(name)
        index = self._by_nation.get(nation_id)
        return index.resolve(name) if index else None

    def __call__(self, season: Any, name: Optional[str], club_id: Optional[UUID]) -> Optional[Club]:
        return self.resolve_for_cup(season.cup_id, name, club_id)


# =============================================================================
# CUP SEASON INGESTION
# =============================================================================

def validate_cup_submission(store: Store, submission: CupSeasonSubmission) -> Cup:
    """
    Check a cup season before anything is written.

    Raises:
        ValidationError: missing year, unknown cup, an edition already
            recorded, an undecidable tie or an inconsistent final
    """
    if not submission.year:
        raise ValidationError("Cup season year is required")

    cup = store.get(Cup, submission.cup_id)
    if cup is None:
        raise ValidationError(f"Cup {submission.cup_id} does not exist")

    if store.filter(CupSeason, {"cup_id": cup.id, "year": submission.year}):
        raise ValidationError(f"{cup.name} {submission.year} was already ingested")

    for match in submission.matches:
        if not match.round or not match.home_club_name or not match.away_club_name:
            raise ValidationError(f"{cup.name} {submission.year}: every tie needs a round and both clubs")
        if match.winner and normalize_name(match.winner) not in (
            normalize_name(match.home_club_name),
            normalize_name(match.away_club_name),
        ):
            raise ValidationError(
                f"{cup.name} {submission.year}: winner {match.winner} did not play "
                f"{match.home_club_name} v {match.away_club_name}"
            )

    if (
        submission.champion_name
        and submission.runner_up
        and normalize_name(submission.champion_name) == normalize_name(submission.runner_up)
    ):
        raise ValidationError(f"{cup.name} {submission.year}: champion and runner-up are the same club")

    return cup


def final_result(submission: CupSeasonSubmission) -> tuple:
    """(champion, runner-up) names, taken from the decided final when not given."""
    champion, runner_up = submission.champion_name, submission.runner_up
    final = next((m for m in submission.matches if m.round == FINAL and m.winner), None)
    if final is not None:
        champion = champion or final.winner
        runner_up = runner_up or final.loser
    return champion, runner_up


def ingest_cup_season(store: Store, submission: CupSeasonSubmission) -> CupIngestionResult:
    """
    Record one cup season and its ties.

    Club ids are stored where the name resolves; honours are not touched
    here (see `rebuild_honours`).
    """
    cup = validate_cup_submission(store, submission)
    resolver = CupClubResolver(store.filter(Club, sort="created_at"), [cup])
    unresolved: Dict[str, None] = {}

    def club_id_for(name: Optional[str]) -> Optional[UUID]:
        if not name:
            return None
        club = resolver.resolve_for_cup(cup.id, name)
        if club is None:
            unresolved.setdefault(name, None)
            return None
        return club.id

    champion, runner_up = final_result(submission)
    season = store.create(CupSeason, {
        "cup_id": cup.id,
        "year": submission.year,
        "champion_name": champion,
        "champion_id": club_id_for(champion),
        "runner_up": runner_up,
        "runner_up_id": club_id_for(runner_up),
        "notes": submission.notes,
    })

    matches = store.bulk_create(CupMatch, [
        {
            "season_id": season.id,
            "round": match.round,
            "home_club_name": match.home_club_name,
            "home_club_id": club_id_for(match.home_club_name),
            "away_club_name": match.away_club_name,
            "away_club_id": club_id_for(match.away_club_name),
            "home_score": match.home_score,
            "away_score": match.away_score,
            "winner": match.winner,
        }
        for match in submission.matches
    ])

    if unresolved:
        logger.warning(f"{cup.name} {submission.year}: no club found for {', '.join(unresolved)}")

    return CupIngestionResult(
        cup_id=cup.id,
        season_id=season.id,
        year=submission.year,
        champion_id=season.champion_id,
        runner_up_id=season.runner_up_id,
        matches_created=len(matches),
        unresolved_names=list(unresolved),
    )


def load_cup_submission(path: Union[str, Path]) -> CupSeasonSubmission:
    try:
        return CupSeasonSubmission.model_validate_json(Path(path).read_text(encoding="utf-8"))
    except ValueError as exc:
        raise ValidationError(f"Invalid cup submission file {path}: {exc}") from exc


# =============================================================================
# HONOURS REBUILD
# =============================================================================

def counted_cups(cups: List[Cup], kind: CompetitionKind) -> List[Cup]:
    """Cups of one kind that feed club honours; secondary domestic cups do not."""
    return [
        cup for cup in cups
        if cup.kind == kind.value and (kind != CompetitionKind.DOMESTIC_CUP or cup.is_main_cup is not False)
    ]


def rebuild_honours(store: Store, nation_id: Optional[UUID] = None) -> Dict[str, int]:
    """
    Rebuild cup and continental honours of every club (optionally of one nation).

    Clubs without any cup record are reset to zero. Only clubs whose honours
    change are written.

    Returns:
        dict with clubs/with_honours/updated counts
    """
    all_clubs = store.filter(Club, sort="created_at")
    clubs = [c for c in all_clubs if nation_id is None or c.nation_id == nation_id]
    cups = store.filter(Cup)
    resolver = CupClubResolver(all_clubs, cups)

    fields: Dict[UUID, Dict[str, Any]] = {club.id: {} for club in clubs}
    honoured = set()

    for kind in CompetitionKind:
        kind_cups = counted_cups(cups, kind)
        seasons = store.filter(CupSeason, {"cup_id": [c.id for c in kind_cups]}) if kind_cups else []
        matches: Dict[UUID, List[CupMatch]] = defaultdict(list)
        if seasons:
            for match in store.filter(CupMatch, {"season_id": [s.id for s in seasons]}):
                matches[match.season_id].append(match)

        records = collect_honours(seasons, matches, resolver)
        honoured.update(club_id for club_id in records if club_id in fields)

        for club_id, club_fields in fields.items():
            club_fields.update(honours_fields(kind, records.get(club_id) or HonoursRecord()))

    updated = 0
    for club in clubs:
        changes = {k: v for k, v in fields[club.id].items() if getattr(club, k) != v}
        if changes:
            store.update(Club, club.id, changes)
            updated += 1

    return {"clubs": len(clubs), "with_honours": len(honoured), "updated": updated}


# =============================================================================
# RUNNERS
# =============================================================================

def run_cup_ingest(submission: CupSeasonSubmission) -> CupIngestionResult:
    """Record a cup season and refresh honours in one transaction."""
    console.print(f"[bold blue]Ingesting cup season {submission.year}...[/bold blue]")
    console.print(f"  • Cup: {submission.cup_id}")
    console.print(f"  • Ties: {len(submission.matches)}")

    with get_sync_session() as session:
        store = SqlAlchemyStore(session)
        result = ingest_cup_season(store, submission)
        cup = store.get(Cup, submission.cup_id)
        stats = rebuild_honours(store, nation_id=cup.nation_id)

    console.print("\n[bold green]✅ Cup season ingestion complete![/bold green]")
    console.print(f"  • Ties recorded: {result.matches_created}")
    console.print(f"  • Clubs updated: {stats['updated']}")
    for name in result.unresolved_names:
        console.print(f"  [yellow]• No club found for {name}[/yellow]")
    return result


def run_honours_sync(nation_id: Optional[UUID] = None) -> Dict[str, int]:
    console.print("[bold blue]🏆 Rebuilding cup and continental honours...[/bold blue]")

    with get_sync_session() as session:
        stats = rebuild_honours(SqlAlchemyStore(session), nation_id=nation_id)

    logger.info(f"Honours sync: {stats['updated']} of {stats['clubs']} clubs updated")
    console.print("\n[bold green]✅ Honours sync complete![/bold green]")
    console.print(f"  • Clubs checked: {stats['clubs']}")
    console.print(f"  • Clubs with honours: {stats['with_honours']}")
    console.print(f"  • Updated: {stats['updated']}")
    return stats
