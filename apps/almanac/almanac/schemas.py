"""
Almanac Schemas
===============

Pydantic value types passed between the engine components:
- Submission input (SeasonSubmission, DivisionTable, TableRow, CupSeasonSubmission)
- Per-club deltas produced by ingestion (ClubDelta)
- Results (IngestionResult, MergedClubStats, rankings)
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from almanac.models import FinishStatus
from almanac.status import DEFAULT_HIGHLIGHT_COLORS, PROMOTING_STATUSES


# =============================================================================
# BASE SCHEMAS
# =============================================================================

class ValueSchema(BaseModel):
    """Immutable value object."""
    model_config = ConfigDict(frozen=True)


# =============================================================================
# SUBMISSION
# =============================================================================

COUNTING_FIELDS = ("won", "drawn", "lost", "goals_for", "goals_against", "points")
DERIVED_FIELDS = {"played", "goal_difference"}


def division_key(name: Optional[str]) -> str:
    """Blank, None and differently cased or padded names map to the same key."""
    return (name or "").strip().lower()


class TableRow(ValueSchema):
    """
    One row of a submitted table.

    `played` and `goal_difference` are derived from the counting fields and
    cannot be set directly; change a row with `with_changes`, which re-derives
    them in one place.
    """
    position: int = Field(ge=1)
    club_name: str = ""
    won: int = Field(default=0, ge=0)
    drawn: int = Field(default=0, ge=0)
    lost: int = Field(default=0, ge=0)
    goals_for: int = Field(default=0, ge=0)
    goals_against: int = Field(default=0, ge=0)
    points: int = 0  # may be negative after deductions
    status: Optional[FinishStatus] = None
    highlight_color: Optional[str] = None

    @field_validator(*COUNTING_FIELDS, mode="before")
    @classmethod
    def blank_as_zero(cls, value: Any) -> Any:
        if value is None or value == "":
            return 0
        return value

    @field_validator("club_name", mode="before")
    @classmethod
    def strip_name(cls, value: Any) -> str:
        return (value or "").strip()

    @computed_field
    @property
    def played(self) -> int:
        return self.won + self.drawn + self.lost

    @computed_field
    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    @property
    def is_blank(self) -> bool:
        return not self.club_name

    def with_changes(self, **changes: Any) -> "TableRow":
        """Return a new row with `changes` applied and derived fields recomputed."""
        data = self.model_dump(exclude=DERIVED_FIELDS)
        data.update({k: v for k, v in changes.items() if k not in DERIVED_FIELDS})
        return TableRow.model_validate(data)


class DivisionTable(BaseModel):
    """One division's table within a season submission."""
    division_name: Optional[str] = None
    rows: List[TableRow] = []
    number_of_teams: Optional[int] = Field(default=None, ge=1)
    promotion_spots: int = 2
    relegation_spots: int = 3
    playoff_start: Optional[int] = None
    playoff_end: Optional[int] = None

    @field_validator("division_name", mode="before")
    @classmethod
    def blank_name_as_main(cls, value: Any) -> Optional[str]:
        return (value or "").strip() or None

    @property
    def key(self) -> str:
        """Case-insensitive identity of the division within a league season."""
        return division_key(self.division_name)

    @property
    def team_count(self) -> int:
        return self.number_of_teams or len(self.rows)

    @property
    def populated_rows(self) -> List[TableRow]:
        return [row for row in self.rows if not row.is_blank]

    @property
    def label(self) -> str:
        return self.division_name or "main"


class SeasonSubmission(BaseModel):
    """A season for one league, made of one or more division tables."""
    league_id: UUID
    year: str = ""
    divisions: List[DivisionTable] = []
    top_scorer: Optional[str] = None
    notes: Optional[str] = None
    colors: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_HIGHLIGHT_COLORS))

    @field_validator("year", mode="before")
    @classmethod
    def strip_year(cls, value: Any) -> str:
        return (value or "").strip()


class CupMatchRow(ValueSchema):
    """One tie of a submitted cup season. `winner` names the side that went through."""
    round: str
    home_club_name: str
    away_club_name: str
    home_score: Optional[int] = Field(default=None, ge=0)
    away_score: Optional[int] = Field(default=None, ge=0)
    winner: Optional[str] = None

    @field_validator("round", "home_club_name", "away_club_name", mode="before")
    @classmethod
    def strip_required(cls, value: Any) -> str:
        return (value or "").strip()

    @field_validator("winner", mode="before")
    @classmethod
    def strip_winner(cls, value: Any) -> Optional[str]:
        return (value or "").strip() or None

    @property
    def loser(self) -> Optional[str]:
        """Name of the side that went out, None while the tie has no winner."""
        if self.winner is None:
            return None
        if self.winner.lower() == self.home_club_name.lower():
            return self.away_club_name
        return self.home_club_name


class CupSeasonSubmission(BaseModel):
    """One edition of a cup: final result and, optionally, every tie played."""
    cup_id: UUID
    year: str = ""
    champion_name: Optional[str] = None
    runner_up: Optional[str] = None
    matches: List[CupMatchRow] = []
    notes: Optional[str] = None

    @field_validator("year", mode="before")
    @classmethod
    def strip_year(cls, value: Any) -> str:
        return (value or "").strip()

    @field_validator("champion_name", "runner_up", mode="before")
    @classmethod
    def blank_as_none(cls, value: Any) -> Optional[str]:
        return (value or "").strip() or None


# =============================================================================
# DELTAS
# =============================================================================

LOWER_COMPETITION_TIER_MAX = 4


class ClubDelta(ValueSchema):
    """The statistical contribution of one table row to one club's career."""
    club_name: str
    league_id: UUID
    season_id: Optional[UUID] = None
    year: str
    tier: int
    position: int
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0
    points: int = 0
    status: FinishStatus = FinishStatus.NONE

    @computed_field
    @property
    def is_top_tier(self) -> bool:
        return self.tier == 1

    @computed_field
    @property
    def is_lower_competition_tier(self) -> bool:
        return self.tier <= LOWER_COMPETITION_TIER_MAX

    @computed_field
    @property
    def is_champion(self) -> bool:
        return self.status == FinishStatus.CHAMPION

    @computed_field
    @property
    def is_promoted(self) -> bool:
        return self.status in PROMOTING_STATUSES

    @computed_field
    @property
    def is_relegated(self) -> bool:
        return self.status == FinishStatus.RELEGATED


class BestFinish(ValueSchema):
    position: Optional[int] = None
    tier: Optional[int] = None
    year: Optional[str] = None


# =============================================================================
# RESULTS
# =============================================================================

class DivisionResult(BaseModel):
    """Outcome of ingesting one division."""
    division_name: Optional[str] = None
    season_id: UUID
    tier: int
    entries_created: int
    club_ids: List[UUID] = []
    created_club_ids: List[UUID] = []


class IngestionResult(BaseModel):
    """Outcome of one submission, one entry per division in submission order."""
    league_id: UUID
    year: str
    divisions: List[DivisionResult] = []

    @property
    def season_id(self) -> Optional[UUID]:
        """The first division's season, the nominal reference for single-table callers."""
        return self.divisions[0].season_id if self.divisions else None

    @property
    def club_ids(self) -> List[UUID]:
        seen: Dict[UUID, None] = {}
        for division in self.divisions:
            for club_id in division.club_ids:
                seen.setdefault(club_id, None)
        return list(seen)


class HonoursRecord(BaseModel):
    """A club's record in one kind of cup competition, built up season by season."""
    titles: int = 0
    title_years: List[str] = []
    runner_up: int = 0
    appearances: int = 0
    best_finish: Optional[str] = None
    best_finish_year: Optional[str] = None


class CupIngestionResult(BaseModel):
    cup_id: UUID
    season_id: UUID
    year: str
    champion_id: Optional[UUID] = None
    runner_up_id: Optional[UUID] = None
    matches_created: int = 0
    unresolved_names: List[str] = []


class MergedClubStats(BaseModel):
    """A club's career merged with its former-name records."""
    club_id: UUID
    name: str
    nation_id: Optional[UUID] = None
    region: Optional[str] = None
    district: Optional[str] = None
    settlement: Optional[str] = None
    contributing_club_ids: List[UUID] = []

    league_titles: int = 0
    lower_tier_titles: int = 0
    seasons_played: int = 0
    seasons_top_flight: int = 0
    seasons_in_tfa: int = 0
    total_wins: int = 0
    total_draws: int = 0
    total_losses: int = 0
    total_goals_scored: int = 0
    total_goals_conceded: int = 0
    promotions: int = 0
    relegations: int = 0
    domestic_cup_titles: int = 0
    domestic_cup_runner_up: int = 0
    vcc_titles: int = 0
    vcc_runner_up: int = 0
    vcc_appearances: int = 0
    ccc_titles: int = 0
    ccc_runner_up: int = 0
    ccc_appearances: int = 0

    title_years: Optional[str] = None
    lower_tier_title_years: Optional[str] = None
    domestic_cup_title_years: Optional[str] = None
    vcc_title_years: Optional[str] = None
    ccc_title_years: Optional[str] = None

    best_finish: BestFinish = BestFinish()
    vcc_best_finish: Optional[str] = None
    ccc_best_finish: Optional[str] = None
    domestic_cup_best_finish: Optional[str] = None


class LocationRanking(BaseModel):
    location_id: Optional[UUID] = None
    name: str
    type: str
    total_clubs: int
    league_titles: int
    domestic_cup_titles: int
    continental_titles: int
    total_promotions: int
    trophy_score: int
    activity_score: int
    recent_form: Optional[float] = None
    population: Optional[int] = None


class PopulationEstimate(BaseModel):
    value: int
    display: str
    tier: str


class NationStrength(BaseModel):
    nation_id: Optional[UUID] = None
    name: str = ""
    score: int
    band: str
    coefficient_rank: Optional[int] = None
    population: Optional[PopulationEstimate] = None


class StabilityResult(BaseModel):
    club_id: UUID
    points: int
    status: str
    base_points: int = 0
