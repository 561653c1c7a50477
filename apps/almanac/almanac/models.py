"""
Almanac Database Models
=======================

Historical record entities:
- Reference data: Nation, League, Location, CountryCoefficient
- Career records: Club (cumulative counters, best finish, lineage links)
- Historical facts: Season, LeagueTableEntry (written once per submission)
- Cup competitions: Cup, CupSeason, CupMatch (source of cup and continental honours)

Season and LeagueTableEntry rows are immutable once ingested. Club rows are
mutated by every ingestion touching them and are versioned for optimistic
concurrency (`version_id`).
"""

import enum
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from almanac.database import Base


# =============================================================================
# ENUMS
# =============================================================================

class FinishStatus(str, enum.Enum):
    """How a club finished within one season's table."""
    CHAMPION = "champion"
    PROMOTED = "promoted"
    PLAYOFF = "playoff"
    PLAYOFF_WINNER = "playoff_winner"  # set manually, never derived from position
    RELEGATED = "relegated"
    NONE = "none"


class Membership(str, enum.Enum):
    """Continental federation membership of a nation."""
    FULL = "VCC"
    ASSOCIATE = "CCC"


class LocationType(str, enum.Enum):
    REGION = "region"
    DISTRICT = "district"
    SETTLEMENT = "settlement"


class StabilityStatus(str, enum.Enum):
    STABLE = "stable"
    AT_RISK = "at_risk"
    CRITICAL = "critical"


# =============================================================================
# REFERENCE DATA
# =============================================================================

class Nation(Base):
    """A football nation."""
    __tablename__ = "nations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    membership: Mapped[Optional[str]] = mapped_column(String(10))  # VCC, CCC or none
    capital: Mapped[Optional[str]] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    leagues: Mapped[list["League"]] = relationship(back_populates="nation")


class League(Base):
    """A league in a nation's pyramid. `tier` is its current level (1 = top flight)."""
    __tablename__ = "leagues"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    nation_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("nations.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    tier: Mapped[int] = mapped_column(Integer, default=1)
    number_of_teams: Mapped[Optional[int]] = mapped_column(Integer)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    nation: Mapped["Nation"] = relationship(back_populates="leagues")

    __table_args__ = (
        UniqueConstraint("nation_id", "name", name="uq_league_nation_name"),
        Index("ix_leagues_nation", "nation_id"),
    )


class Location(Base):
    """A region, district or settlement that clubs are attached to by name."""
    __tablename__ = "locations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    nation_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("nations.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    population: Mapped[Optional[int]] = mapped_column(Integer)

    __table_args__ = (
        Index("ix_locations_nation_type", "nation_id", "type"),
    )


class CountryCoefficient(Base):
    """Externally supplied coefficient ranking of a nation."""
    __tablename__ = "country_coefficients"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    nation_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("nations.id"), nullable=False)
    rank: Mapped[Optional[int]] = mapped_column(Integer)
    total_points: Mapped[Optional[float]] = mapped_column(Float)
    season: Mapped[Optional[str]] = mapped_column(String(20))

    __table_args__ = (
        Index("ix_country_coefficients_nation", "nation_id"),
    )


# =============================================================================
# CAREER RECORDS
# =============================================================================

class Club(Base):
    """
    A club and its cumulative career record.

    Lineage links:
    - predecessor_club_id / predecessor_club_2_id: different entities whose
      history is shown alongside this club but never summed into it
    - former_name_club_id / former_name_club_2_id: the same entity under an
      earlier name; summed into the merged career view
    - successor_club_id / current_name_club_id: the reverse directions
    """
    __tablename__ = "clubs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    nation_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("nations.id"), nullable=False)
    league_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("leagues.id"))
    last_season_year: Mapped[Optional[str]] = mapped_column(String(20))

    # Geography
    region: Mapped[Optional[str]] = mapped_column(String(255))
    district: Mapped[Optional[str]] = mapped_column(String(255))
    settlement: Mapped[Optional[str]] = mapped_column(String(255))
    is_defunct: Mapped[bool] = mapped_column(Boolean, default=False)

    # League record
    league_titles: Mapped[int] = mapped_column(Integer, default=0)
    title_years: Mapped[Optional[str]] = mapped_column(Text)
    lower_tier_titles: Mapped[int] = mapped_column(Integer, default=0)
    lower_tier_title_years: Mapped[Optional[str]] = mapped_column(Text)
    seasons_played: Mapped[int] = mapped_column(Integer, default=0)
    seasons_top_flight: Mapped[int] = mapped_column(Integer, default=0)
    seasons_in_tfa: Mapped[int] = mapped_column(Integer, default=0)  # seasons spent in tiers 1-4
    total_wins: Mapped[int] = mapped_column(Integer, default=0)
    total_draws: Mapped[int] = mapped_column(Integer, default=0)
    total_losses: Mapped[int] = mapped_column(Integer, default=0)
    total_goals_scored: Mapped[int] = mapped_column(Integer, default=0)
    total_goals_conceded: Mapped[int] = mapped_column(Integer, default=0)
    promotions: Mapped[int] = mapped_column(Integer, default=0)
    relegations: Mapped[int] = mapped_column(Integer, default=0)

    # Best finish: (position, tier, year); lower tier number wins first
    best_finish: Mapped[Optional[int]] = mapped_column(Integer)
    best_finish_tier: Mapped[Optional[int]] = mapped_column(Integer)
    best_finish_year: Mapped[Optional[str]] = mapped_column(String(20))

    # Domestic cup
    domestic_cup_titles: Mapped[int] = mapped_column(Integer, default=0)
    domestic_cup_title_years: Mapped[Optional[str]] = mapped_column(Text)
    domestic_cup_runner_up: Mapped[int] = mapped_column(Integer, default=0)
    domestic_cup_best_finish: Mapped[Optional[str]] = mapped_column(String(50))

    # Continental competitions (VCC = tier 1, CCC = tier 2)
    vcc_titles: Mapped[int] = mapped_column(Integer, default=0)
    vcc_title_years: Mapped[Optional[str]] = mapped_column(Text)
    vcc_runner_up: Mapped[int] = mapped_column(Integer, default=0)
    vcc_appearances: Mapped[int] = mapped_column(Integer, default=0)
    vcc_best_finish: Mapped[Optional[str]] = mapped_column(String(50))
    ccc_titles: Mapped[int] = mapped_column(Integer, default=0)
    ccc_title_years: Mapped[Optional[str]] = mapped_column(Text)
    ccc_runner_up: Mapped[int] = mapped_column(Integer, default=0)
    ccc_appearances: Mapped[int] = mapped_column(Integer, default=0)
    ccc_best_finish: Mapped[Optional[str]] = mapped_column(String(50))

    # Stability
    stability_points: Mapped[Optional[int]] = mapped_column(Integer)
    stability_status: Mapped[Optional[str]] = mapped_column(String(20))

    # Lineage
    predecessor_club_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("clubs.id"))
    predecessor_club_2_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("clubs.id"))
    successor_club_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("clubs.id"))
    former_name_club_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("clubs.id"))
    former_name_club_2_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("clubs.id"))
    current_name_club_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("clubs.id"))

    # Metadata
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        Index("ix_clubs_nation", "nation_id"),
        Index("ix_clubs_league", "league_id"),
    )


# =============================================================================
# HISTORICAL FACTS
# =============================================================================

class Season(Base):
    """
    One competition-year of a league division.

    `tier` is a snapshot of the league's tier when the season was created and
    does not follow later restructuring of the pyramid.
    """
    __tablename__ = "seasons"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    league_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("leagues.id"), nullable=False)
    year: Mapped[str] = mapped_column(String(20), nullable=False)
    tier: Mapped[int] = mapped_column(Integer, nullable=False)
    division_name: Mapped[Optional[str]] = mapped_column(String(100))
    number_of_teams: Mapped[int] = mapped_column(Integer, nullable=False)

    promotion_spots: Mapped[int] = mapped_column(Integer, default=0)
    relegation_spots: Mapped[int] = mapped_column(Integer, default=0)
    playoff_start: Mapped[Optional[int]] = mapped_column(Integer)
    playoff_end: Mapped[Optional[int]] = mapped_column(Integer)

    # Summary derived from the table at ingestion
    champion_name: Mapped[Optional[str]] = mapped_column(String(255))
    runner_up: Mapped[Optional[str]] = mapped_column(String(255))
    promoted_teams: Mapped[Optional[str]] = mapped_column(Text)
    relegated_teams: Mapped[Optional[str]] = mapped_column(Text)
    top_scorer: Mapped[Optional[str]] = mapped_column(String(255))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    champion_color: Mapped[Optional[str]] = mapped_column(String(20))
    promotion_color: Mapped[Optional[str]] = mapped_column(String(20))
    relegation_color: Mapped[Optional[str]] = mapped_column(String(20))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    entries: Mapped[list["LeagueTableEntry"]] = relationship(back_populates="season")

    __table_args__ = (
        Index("ix_seasons_league_year", "league_id", "year"),
    )


class LeagueTableEntry(Base):
    """One club's row in one season's table."""
    __tablename__ = "league_table_entries"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    season_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("seasons.id"), nullable=False)
    league_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("leagues.id"), nullable=False)
    club_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("clubs.id"), nullable=False)
    year: Mapped[str] = mapped_column(String(20), nullable=False)
    division_name: Mapped[Optional[str]] = mapped_column(String(100))

    position: Mapped[int] = mapped_column(Integer, nullable=False)
    club_name: Mapped[str] = mapped_column(String(255), nullable=False)
    played: Mapped[int] = mapped_column(Integer, default=0)
    won: Mapped[int] = mapped_column(Integer, default=0)
    drawn: Mapped[int] = mapped_column(Integer, default=0)
    lost: Mapped[int] = mapped_column(Integer, default=0)
    goals_for: Mapped[int] = mapped_column(Integer, default=0)
    goals_against: Mapped[int] = mapped_column(Integer, default=0)
    goal_difference: Mapped[int] = mapped_column(Integer, default=0)
    points: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(20), default=FinishStatus.NONE.value)
    highlight_color: Mapped[Optional[str]] = mapped_column(String(20))

    season: Mapped["Season"] = relationship(back_populates="entries")

    __table_args__ = (
        UniqueConstraint("season_id", "position", name="uq_table_entry_season_position"),
        Index("ix_table_entries_club", "club_id"),
        Index("ix_table_entries_league_year", "league_id", "year"),
    )


# =============================================================================
# CUP COMPETITIONS
# =============================================================================

class CompetitionKind(str, enum.Enum):
    """Which honours a cup feeds: a nation's domestic cup or a continental cup."""
    DOMESTIC_CUP = "domestic_cup"
    VCC = "vcc"
    CCC = "ccc"


class Cup(Base):
    """
    A knockout competition.

    Domestic cups belong to a nation; continental cups (VCC, CCC) have none.
    Only main domestic cups count towards club honours.
    """
    __tablename__ = "cups"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    nation_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("nations.id"))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), default=CompetitionKind.DOMESTIC_CUP.value)
    is_main_cup: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("nation_id", "name", name="uq_cup_nation_name"),
    )


class CupSeason(Base):
    """One edition of a cup, with its final result."""
    __tablename__ = "cup_seasons"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    cup_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("cups.id"), nullable=False)
    year: Mapped[str] = mapped_column(String(20), nullable=False)

    champion_name: Mapped[Optional[str]] = mapped_column(String(255))
    champion_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("clubs.id"))
    runner_up: Mapped[Optional[str]] = mapped_column(String(255))
    runner_up_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("clubs.id"))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    matches: Mapped[list["CupMatch"]] = relationship(back_populates="season")

    __table_args__ = (
        UniqueConstraint("cup_id", "year", name="uq_cup_season_cup_year"),
    )


class CupMatch(Base):
    """A tie in a cup season. `winner` holds the name of the side that went through."""
    __tablename__ = "cup_matches"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    season_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("cup_seasons.id"), nullable=False)
    round: Mapped[str] = mapped_column(String(50), nullable=False)

    home_club_name: Mapped[str] = mapped_column(String(255), nullable=False)
    home_club_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("clubs.id"))
    away_club_name: Mapped[str] = mapped_column(String(255), nullable=False)
    away_club_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("clubs.id"))
    home_score: Mapped[Optional[int]] = mapped_column(Integer)
    away_score: Mapped[Optional[int]] = mapped_column(Integer)
    winner: Mapped[Optional[str]] = mapped_column(String(255))

    season: Mapped["CupSeason"] = relationship(back_populates="matches")

    __table_args__ = (
        Index("ix_cup_matches_season", "season_id"),
    )
