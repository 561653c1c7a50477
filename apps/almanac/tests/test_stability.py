"""
Club Stability Tests
====================
"""

from types import SimpleNamespace
from uuid import uuid4

import pytest

from almanac.jobs.ingest import ingest_season
from almanac.jobs.stability import (
    TableStabilityRecalculator,
    base_points_for_tier,
    calculate_club_stability,
    champion_bonus,
    promotion_bonus,
    season_change,
)
from almanac.models import Club
from almanac.schemas import DivisionTable, SeasonSubmission


def season(tier, number_of_teams=18):
    return SimpleNamespace(id=uuid4(), tier=tier, number_of_teams=number_of_teams)


def entry(season_record, year, position, status="none"):
    return SimpleNamespace(
        season_id=season_record.id if season_record else uuid4(),
        year=year,
        position=position,
        status=status,
    )


class TestTierTables:
    @pytest.mark.parametrize("tier,points", [
        (1, 20), (4, 20), (5, 16), (6, 14), (9, 14), (10, 12), (11, 12), (12, 10), (14, 10), (15, 8), (22, 8),
    ])
    def test_base_points(self, tier, points):
        assert base_points_for_tier(tier) == points

    @pytest.mark.parametrize("tier,bonus", [
        (1, 7), (2, 6), (3, 5), (4, 4), (5, 4), (6, 3), (9, 3), (10, 2), (11, 2), (12, 1),
    ])
    def test_champion_bonus(self, tier, bonus):
        assert champion_bonus(tier) == bonus

    @pytest.mark.parametrize("tier,bonus", [
        (1, 0), (2, 5), (3, 4), (4, 3), (5, 3), (6, 2), (9, 2), (10, 1),
    ])
    def test_promotion_bonus(self, tier, bonus):
        assert promotion_bonus(tier) == bonus


class TestSeasonChange:
    def test_first_place_counts_as_champion(self):
        assert season_change(1, "none", tier=2, teams_in_league=18) == 6

    def test_playoff_winner_counts_as_promoted(self):
        assert season_change(4, "playoff_winner", tier=3, teams_in_league=18) == 4

    def test_bottom_of_table_costs_more(self):
        assert season_change(18, "relegated", tier=3, teams_in_league=18) == -3
        assert season_change(17, "relegated", tier=3, teams_in_league=18) == -2

    def test_top_half(self):
        assert season_change(9, "none", tier=3, teams_in_league=18) == 1
        assert season_change(10, "none", tier=3, teams_in_league=18) == 0


class TestCalculateClubStability:
    def test_no_seasons(self):
        assert calculate_club_stability(uuid4(), [], {}) is None

    def test_base_uses_earliest_season_tier(self):
        top, lower = season(1), season(6)
        entries = [entry(top, "2001-02", 12), entry(lower, "1995-96", 12)]

        result = calculate_club_stability(uuid4(), entries, {top.id: top, lower.id: lower})

        assert result.base_points == 14
        assert result.points == 14
        assert result.status == "stable"

    def test_critical_club(self):
        low = season(15, number_of_teams=10)
        entries = [entry(low, f"20{10 + i}-{11 + i}", 10, "relegated") for i in range(5)]

        result = calculate_club_stability(uuid4(), entries, {low.id: low})

        assert result.points == 8 - 15
        assert result.status == "critical"

    def test_at_risk_club(self):
        low = season(15, number_of_teams=10)
        entries = [entry(low, "2010-11", 9, "relegated")] * 4

        result = calculate_club_stability(uuid4(), entries, {low.id: low})

        assert result.points == 0
        assert result.status == "at_risk"

    def test_unknown_season_defaults(self):
        # Tier 1, 20 teams
        result = calculate_club_stability(uuid4(), [entry(None, "2020-21", 10)], {})
        assert result.points == 21


class TestTableStabilityRecalculator:
    def test_updates_clubs_from_their_entries(self, store, league, make_rows):
        submission = SeasonSubmission(
            league_id=league.id,
            year="2023-24",
            divisions=[DivisionTable(rows=make_rows(18), promotion_spots=2, relegation_spots=3)],
        )
        result = ingest_season(store, submission)

        results = TableStabilityRecalculator(store).recalculate(result.club_ids)

        assert len(results) == 18
        champion = store.filter(Club, {"name": "Vorlan United"})[0]
        bottom = store.filter(Club, {"name": "Ulvane"})[0]
        assert (champion.stability_points, champion.stability_status) == (27, "stable")
        assert bottom.stability_points == 17

    def test_clubs_without_entries_are_skipped(self, store, nation):
        club = store.create(Club, {"name": "Idle FC", "nation_id": nation.id})

        assert TableStabilityRecalculator(store).recalculate([club.id]) == []
        assert club.stability_points is None

    def test_ingestion_triggers_recalculation(self, store, league, make_rows):
        submission = SeasonSubmission(league_id=league.id, year="2023-24",
                                      divisions=[DivisionTable(rows=make_rows(6))])
        ingest_season(store, submission, stability=TableStabilityRecalculator(store))

        assert all(c.stability_status is not None for c in store.filter(Club))
