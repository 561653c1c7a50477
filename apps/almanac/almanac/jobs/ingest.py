"""
Season Ingestion Job
====================

Turns one submitted season (one or more division tables) into:
- one Season record per division
- one LeagueTableEntry per populated row
- one career update per club, via the accumulator

Everything is validated before the first write. The runner executes the whole
submission in one transaction, so a failure in any division leaves no
seasons, entries or club updates behind.

Run with: python -m almanac season:ingest season.json
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union
from uuid import UUID

from rich.console import Console

from almanac.accumulator import apply_delta, seed_club
from almanac.config import settings
from almanac.database import get_sync_session
from almanac.errors import PersistenceError, ValidationError
from almanac.jobs.stability import StabilityRecalculator, TableStabilityRecalculator
from almanac.models import Club, FinishStatus, League, LeagueTableEntry, Season
from almanac.schemas import (
    ClubDelta,
    DivisionResult,
    DivisionTable,
    IngestionResult,
    SeasonSubmission,
    TableRow,
    division_key,
)
from almanac.status import PROMOTING_STATUSES, classify_row
from almanac.store import SqlAlchemyStore, Store

console = Console()
logger = logging.getLogger(__name__)


# =============================================================================
# CLUB RESOLUTION
# =============================================================================

def normalize_name(name: str) -> str:
    """Key used for case-insensitive club matching."""
    return name.strip().lower()


class ClubNameIndex:
    """
    Case-insensitive club name index for one nation.

    Built once per submission. Clubs created during the submission are
    registered so later rows with a differently cased name resolve to them.
    """

    def __init__(self, clubs: Optional[List[Club]] = None):
        self._clubs: Dict[str, Club] = {}
        for club in clubs or []:
            # First record wins when a nation already holds duplicate names
            self._clubs.setdefault(normalize_name(club.name), club)

    @classmethod
    def for_nation(cls, store: Store, nation_id: UUID) -> "ClubNameIndex":
        return cls(store.filter(Club, {"nation_id": nation_id}, sort="created_at"))

    def resolve(self, name: str) -> Optional[Club]:
        return self._clubs.get(normalize_name(name))

    def register(self, name: str, club: Club) -> None:
        self._clubs[normalize_name(name)] = club

    def __len__(self) -> int:
        return len(self._clubs)


# =============================================================================
# VALIDATION
# =============================================================================

def validate_division(division: DivisionTable) -> None:
    """Reject a division table whose rows cannot be ingested as-is."""
    label = division.label
    rows = division.populated_rows

    if division.promotion_spots < 0 or division.relegation_spots < 0:
        raise ValidationError(f"Division {label}: spot counts must not be negative")

    positions = [row.position for row in rows]
    if len(positions) != len(set(positions)):
        raise ValidationError(f"Division {label}: duplicate table positions")

    names = [normalize_name(row.club_name) for row in rows]
    if len(names) != len(set(names)):
        raise ValidationError(f"Division {label}: the same club appears more than once")


def validate_submission(store: Store, submission: SeasonSubmission) -> League:
    """
    Check a submission before anything is written.

    Returns:
        The league the submission belongs to

    Raises:
        ValidationError: missing year, no populated rows, unknown league,
            malformed division or a division that was already ingested
    """
    if not submission.year:
        raise ValidationError("Season year is required")

    if not any(division.populated_rows for division in submission.divisions):
        raise ValidationError("Submission has no populated table rows")

    league = store.get(League, submission.league_id)
    if league is None:
        raise ValidationError(f"League {submission.league_id} does not exist")

    ingested = {
        division_key(season.division_name)
        for season in store.filter(Season, {"league_id": submission.league_id, "year": submission.year})
    }

    seen_divisions = set()
    for division in submission.divisions:
        if division.key in seen_divisions:
            raise ValidationError(f"Division {division.label} is submitted twice")
        seen_divisions.add(division.key)

        validate_division(division)

        if division.key in ingested:
            raise ValidationError(
                f"{league.name} {submission.year} division {division.label} was already ingested"
            )

    return league


# =============================================================================
# DELTAS AND SUMMARIES
# =============================================================================

def compute_delta(
    row: TableRow,
    league_id: UUID,
    year: str,
    tier: int,
    season_id: Optional[UUID] = None,
) -> ClubDelta:
    """Statistical contribution of one classified row."""
    return ClubDelta(
        club_name=row.club_name,
        league_id=league_id,
        season_id=season_id,
        year=year,
        tier=tier,
        position=row.position,
        won=row.won,
        drawn=row.drawn,
        lost=row.lost,
        goals_for=row.goals_for,
        goals_against=row.goals_against,
        points=row.points,
        status=row.status or FinishStatus.NONE,
    )


def classify_division(division: DivisionTable, colors: Dict[str, str]) -> List[TableRow]:
    """Fill in status and colour for every populated row, ordered by position."""
    return [
        classify_row(
            row,
            team_count=division.team_count,
            promotion_spots=division.promotion_spots,
            relegation_spots=division.relegation_spots,
            playoff_start=division.playoff_start,
            playoff_end=division.playoff_end,
            colors=colors,
        )
        for row in sorted(division.populated_rows, key=lambda r: r.position)
    ]


def summarize_division(rows: List[TableRow]) -> Dict[str, Optional[str]]:
    """Champion, runner-up and promoted/relegated names for the season record."""
    champion = next((r.club_name for r in rows if r.status == FinishStatus.CHAMPION), None)
    runner_up = next((r.club_name for r in rows if r.position == 2), None)
    promoted = [r.club_name for r in rows if r.status in PROMOTING_STATUSES]
    relegated = [r.club_name for r in rows if r.status == FinishStatus.RELEGATED]

    return {
        "champion_name": champion,
        "runner_up": runner_up,
        "promoted_teams": ", ".join(promoted) or None,
        "relegated_teams": ", ".join(relegated) or None,
    }


# =============================================================================
# INGESTION
# =============================================================================

def ingest_division(
    store: Store,
    submission: SeasonSubmission,
    division: DivisionTable,
    league: League,
    index: ClubNameIndex,
) -> DivisionResult:
    """Write one division's season, club updates and table entries."""
    tier = league.tier or 1
    rows = classify_division(division, submission.colors)

    season = store.create(Season, {
        "league_id": league.id,
        "year": submission.year,
        "tier": tier,
        "division_name": division.division_name,
        "number_of_teams": division.team_count,
        "promotion_spots": division.promotion_spots,
        "relegation_spots": division.relegation_spots,
        "playoff_start": division.playoff_start,
        "playoff_end": division.playoff_end,
        "top_scorer": submission.top_scorer,
        "notes": submission.notes,
        "champion_color": submission.colors.get(FinishStatus.CHAMPION.value),
        "promotion_color": submission.colors.get(FinishStatus.PROMOTED.value),
        "relegation_color": submission.colors.get(FinishStatus.RELEGATED.value),
        **summarize_division(rows),
    })

    entries = []
    club_ids: List[UUID] = []
    created_ids: List[UUID] = []

    for row in rows:
        delta = compute_delta(row, league.id, submission.year, tier, season_id=season.id)
        club = index.resolve(row.club_name)

        if club is None:
            club = store.create(Club, {
                "name": row.club_name,
                "nation_id": league.nation_id,
                **seed_club(delta),
            })
            index.register(row.club_name, club)
            created_ids.append(club.id)
            logger.debug(f"Created club {club.name} from {league.name} {submission.year}")
        else:
            club = store.update(Club, club.id, apply_delta(club, delta))

        club_ids.append(club.id)
        entries.append({
            "season_id": season.id,
            "league_id": league.id,
            "club_id": club.id,
            "year": submission.year,
            "division_name": division.division_name,
            "position": row.position,
            "club_name": row.club_name,
            "played": row.played,
            "won": row.won,
            "drawn": row.drawn,
            "lost": row.lost,
            "goals_for": row.goals_for,
            "goals_against": row.goals_against,
            "goal_difference": row.goal_difference,
            "points": row.points,
            "status": (row.status or FinishStatus.NONE).value,
            "highlight_color": row.highlight_color,
        })

    store.bulk_create(LeagueTableEntry, entries)

    return DivisionResult(
        division_name=division.division_name,
        season_id=season.id,
        tier=tier,
        entries_created=len(entries),
        club_ids=club_ids,
        created_club_ids=created_ids,
    )


def ingest_season(
    store: Store,
    submission: SeasonSubmission,
    stability: Optional[StabilityRecalculator] = None,
) -> IngestionResult:
    """
    Ingest a season submission through a store.

    Divisions are processed in submission order, each independently. The
    caller owns the transaction; on any error nothing here should be committed.

    Args:
        store: Persistence collaborator
        submission: The season tables
        stability: Recalculated for the touched clubs after a single-division submission

    Returns:
        IngestionResult with one DivisionResult per division
    """
    league = validate_submission(store, submission)
    index = ClubNameIndex.for_nation(store, league.nation_id)

    result = IngestionResult(league_id=league.id, year=submission.year)

    for division in submission.divisions:
        if not division.populated_rows:
            logger.info(f"Skipping empty division {division.label}")
            continue
        try:
            result.divisions.append(ingest_division(store, submission, division, league, index))
        except PersistenceError as exc:
            raise PersistenceError(f"Division {division.label}: {exc}", division=division.label) from exc

    logger.info(
        f"Ingested {league.name} {submission.year}: "
        f"{len(result.divisions)} division(s), {len(result.club_ids)} club(s)"
    )

    if stability is not None and len(submission.divisions) == 1:
        stability.recalculate(result.club_ids)

    return result


def load_submission(path: Union[str, Path]) -> SeasonSubmission:
    """Read a season submission from a JSON file."""
    try:
        return SeasonSubmission.model_validate_json(Path(path).read_text(encoding="utf-8"))
    except ValueError as exc:
        # pydantic's ValidationError subclasses ValueError
        raise ValidationError(f"Invalid submission file {path}: {exc}") from exc


def run_season_ingest(submission: SeasonSubmission) -> IngestionResult:
    """
    Ingest a submission in its own transaction.

    Returns:
        IngestionResult for the committed submission
    """
    console.print(f"[bold blue]Ingesting season {submission.year}...[/bold blue]")
    console.print(f"  • League: {submission.league_id}")
    console.print(f"  • Divisions: {len(submission.divisions)}")

    with get_sync_session() as session:
        store = SqlAlchemyStore(session)
        stability = TableStabilityRecalculator(store) if settings.recalculate_stability_on_ingest else None
        result = ingest_season(store, submission, stability=stability)

    console.print("\n[bold green]✅ Season ingestion complete![/bold green]")
    for division in result.divisions:
        console.print(
            f"  • {division.division_name or 'main'}: {division.entries_created} entries, "
            f"{len(division.created_club_ids)} new club(s)"
        )

    return result
