"""
Season Ingestion Tests
======================

End-to-end ingestion through the SQLAlchemy store: classification, club
resolution, accumulation exactly once per (club, season), validation before
any write, and rollback of a failed submission.
"""

from uuid import uuid4

import pytest

import almanac.jobs.ingest as ingest_module
from almanac.database import get_sync_session
from almanac.errors import PersistenceError, ValidationError
from almanac.jobs.ingest import (
    ClubNameIndex,
    compute_delta,
    ingest_season,
    load_submission,
    normalize_name,
    run_season_ingest,
    summarize_division,
)
from almanac.models import Club, FinishStatus, League, LeagueTableEntry, Nation, Season
from almanac.schemas import DivisionTable, SeasonSubmission, TableRow
from almanac.store import SqlAlchemyStore


def submission_for(league, year, *divisions, **fields):
    return SeasonSubmission(league_id=league.id, year=year, divisions=list(divisions), **fields)


class RecordingStability:
    def __init__(self):
        self.calls = []

    def recalculate(self, club_ids):
        self.calls.append(list(club_ids))


class TestClubNameIndex:
    """Tests for case-insensitive club resolution."""

    def test_resolves_regardless_of_case_and_spacing(self):
        club = Club(name="Vorlan United")
        index = ClubNameIndex([club])

        assert index.resolve("VORLAN UNITED") is club
        assert index.resolve("  vorlan united ") is club
        assert index.resolve("Vorlan") is None

    def test_registered_clubs_resolve(self):
        index = ClubNameIndex()
        club = Club(name="Ashby Town")
        index.register("Ashby Town", club)

        assert index.resolve("ashby town") is club
        assert len(index) == 1

    def test_normalize_name(self):
        assert normalize_name("  Kelmar ROVERS ") == "kelmar rovers"

    def test_index_is_scoped_to_nation(self, store, nation):
        other = store.create(Nation, {"name": "Elsmark"})
        store.create(Club, {"name": "Vorlan United", "nation_id": other.id})

        assert ClubNameIndex.for_nation(store, nation.id).resolve("Vorlan United") is None
        assert ClubNameIndex.for_nation(store, other.id).resolve("vorlan united") is not None


class TestSingleDivision:
    """Tests for a single 18-team top flight season."""

    def test_eighteen_team_scenario(self, store, league, make_rows):
        division = DivisionTable(rows=make_rows(18), promotion_spots=2, relegation_spots=3)
        result = ingest_season(store, submission_for(league, "2023-24", division))

        entries = store.filter(LeagueTableEntry, {"season_id": result.season_id}, sort="position")
        statuses = {e.position: e.status for e in entries}

        assert len(entries) == 18
        assert statuses[1] == "champion"
        assert statuses[2] == "promoted"
        assert statuses[15] == "none"
        assert statuses[16] == "relegated"
        assert statuses[18] == "relegated"

    def test_season_record_and_summary(self, store, league, make_rows):
        rows = make_rows(18)
        division = DivisionTable(rows=rows, promotion_spots=2, relegation_spots=3)
        result = ingest_season(store, submission_for(league, "2023-24", division, top_scorer="R. Calder"))

        season = store.get(Season, result.season_id)
        assert season.tier == 1
        assert season.number_of_teams == 18
        assert season.champion_name == "Vorlan United"
        assert season.runner_up == "Ashby Town"
        assert season.promoted_teams == "Ashby Town"
        assert season.relegated_teams == "Greywater, Estin Park, Ulvane"
        assert season.top_scorer == "R. Calder"
        assert season.champion_color == "#fef3c7"

    def test_entries_store_derived_fields(self, store, league):
        row = TableRow(position=1, club_name="Vorlan United", won=10, drawn=5, lost=3,
                       goals_for=40, goals_against=22, points=35)
        ingest_season(store, submission_for(league, "2023-24", DivisionTable(rows=[row])))

        entry = store.filter(LeagueTableEntry)[0]
        assert entry.played == 18
        assert entry.goal_difference == 18

    def test_new_clubs_are_seeded(self, store, league, nation, make_rows):
        division = DivisionTable(rows=make_rows(18), promotion_spots=2, relegation_spots=3)
        result = ingest_season(store, submission_for(league, "2023-24", division))

        champion = store.filter(Club, {"name": "Vorlan United"})[0]
        assert len(result.divisions[0].created_club_ids) == 18
        assert champion.nation_id == nation.id
        assert champion.league_id == league.id
        assert champion.league_titles == 1
        assert champion.title_years == "2023-24"
        assert champion.seasons_played == 1
        assert champion.seasons_top_flight == 1
        assert (champion.best_finish, champion.best_finish_tier) == (1, 1)
        assert champion.version_id == 1

    def test_blank_rows_are_skipped(self, store, league, make_rows):
        rows = make_rows(4) + [TableRow(position=5, club_name="")]
        result = ingest_season(store, submission_for(league, "2023-24", DivisionTable(rows=rows)))
        assert result.divisions[0].entries_created == 4

    def test_second_season_accumulates(self, store, league, make_rows):
        ingest_season(store, submission_for(league, "2022-23", DivisionTable(rows=make_rows(18))))
        # Reverse the table the following year
        names = list(reversed([r.club_name for r in make_rows(18)]))
        ingest_season(store, submission_for(league, "2023-24", DivisionTable(rows=make_rows(18, names=names))))

        club = store.filter(Club, {"name": "Vorlan United"})[0]
        assert club.seasons_played == 2
        assert club.league_titles == 1
        assert club.relegations == 1
        assert club.best_finish == 1
        assert club.best_finish_year == "2022-23"
        assert club.last_season_year == "2023-24"
        assert len(store.filter(Club)) == 18


class TestClubResolution:
    """Tests for matching rows to existing clubs."""

    def test_existing_club_matched_case_insensitively(self, store, league, nation):
        existing = store.create(Club, {"name": "Vorlan United", "nation_id": nation.id})
        row = TableRow(position=1, club_name="VORLAN UNITED", won=3)
        result = ingest_season(store, submission_for(league, "2023-24", DivisionTable(rows=[row])))

        assert result.divisions[0].club_ids == [existing.id]
        assert result.divisions[0].created_club_ids == []
        assert store.get(Club, existing.id).total_wins == 3

    def test_differently_cased_names_in_one_submission_share_a_club(self, store, second_tier_league):
        north = DivisionTable(division_name="North", rows=[TableRow(position=1, club_name="Ashby Town")])
        south = DivisionTable(division_name="South", rows=[TableRow(position=1, club_name="ashby town")])
        result = ingest_season(store, submission_for(second_tier_league, "2023-24", north, south))

        assert result.divisions[0].club_ids == result.divisions[1].club_ids
        clubs = store.filter(Club)
        assert len(clubs) == 1
        assert clubs[0].name == "Ashby Town"
        assert clubs[0].lower_tier_titles == 2
        assert clubs[0].lower_tier_title_years == "2023-24, 2023-24"


class TestAccumulatesOnce:
    """Each (club, season) pair is accumulated exactly once."""

    def test_one_accumulation_per_club_and_season(self, store, league, make_rows, monkeypatch):
        calls = []
        real_apply, real_seed = ingest_module.apply_delta, ingest_module.seed_club

        def counting_apply(club, delta):
            calls.append((club.id, delta.season_id))
            return real_apply(club, delta)

        def counting_seed(delta):
            calls.append((delta.club_name, delta.season_id))
            return real_seed(delta)

        monkeypatch.setattr(ingest_module, "apply_delta", counting_apply)
        monkeypatch.setattr(ingest_module, "seed_club", counting_seed)

        ingest_season(store, submission_for(league, "2022-23", DivisionTable(rows=make_rows(18))))
        ingest_season(store, submission_for(league, "2023-24", DivisionTable(rows=make_rows(18))))

        assert len(calls) == 36
        assert len(set(calls)) == 36

    def test_reingesting_a_season_is_rejected(self, store, league, make_rows):
        submission = submission_for(league, "2023-24", DivisionTable(rows=make_rows(18)))
        ingest_season(store, submission)

        with pytest.raises(ValidationError, match="already ingested"):
            ingest_season(store, submission)

        club = store.filter(Club, {"name": "Vorlan United"})[0]
        assert club.seasons_played == 1
        assert len(store.filter(Season)) == 1

    @pytest.mark.parametrize("first,second", [
        (None, ""),
        ("", "   "),
        ("North", "north "),
        (" NORTH", "North"),
    ])
    def test_equivalent_division_names_are_rejected(self, store, league, make_rows, first, second):
        ingest_season(store, submission_for(league, "2020-21", DivisionTable(division_name=first, rows=make_rows(4))))

        with pytest.raises(ValidationError, match="already ingested"):
            ingest_season(
                store, submission_for(league, "2020-21", DivisionTable(division_name=second, rows=make_rows(4)))
            )

        club = store.filter(Club, {"name": "Vorlan United"})[0]
        assert club.seasons_played == 1
        assert len(store.filter(Season)) == 1

    def test_equivalent_division_names_in_one_submission(self, store, league, make_rows):
        north = DivisionTable(division_name="North", rows=make_rows(4))
        again = DivisionTable(division_name=" NORTH ", rows=make_rows(4))

        with pytest.raises(ValidationError, match="submitted twice"):
            ingest_season(store, submission_for(league, "2020-21", north, again))

        assert store.filter(Season) == []

    def test_blank_division_name_is_stored_as_main(self, store, league, make_rows):
        result = ingest_season(store, submission_for(league, "2020-21", DivisionTable(division_name=" ", rows=make_rows(4))))

        assert result.divisions[0].division_name is None
        assert store.get(Season, result.season_id).division_name is None

    def test_club_listed_in_two_divisions_counts_in_both(self, store, league, make_rows):
        """A club named in two divisions of one season is accumulated once per division."""
        north = DivisionTable(division_name="North", rows=make_rows(4))
        south = DivisionTable(
            division_name="South",
            rows=make_rows(4, names=["Vorlan United", "E", "F", "G"]),
        )

        result = ingest_season(store, submission_for(league, "2023-24", north, south))

        clubs = store.filter(Club, {"name": "Vorlan United"})
        assert len(clubs) == 1
        club = clubs[0]
        assert club.seasons_played == 2
        assert club.league_titles == 2
        assert club.title_years == "2023-24, 2023-24"
        assert len(store.filter(LeagueTableEntry, {"club_id": club.id})) == 2
        assert result.club_ids.count(club.id) == 1


class TestValidation:
    """Submissions are rejected before any write."""

    def _assert_nothing_written(self, store):
        assert store.filter(Season) == []
        assert store.filter(Club) == []
        assert store.filter(LeagueTableEntry) == []

    def test_missing_year(self, store, league, make_rows):
        with pytest.raises(ValidationError, match="year"):
            ingest_season(store, submission_for(league, "  ", DivisionTable(rows=make_rows(4))))
        self._assert_nothing_written(store)

    def test_no_populated_rows(self, store, league):
        blank = DivisionTable(rows=[TableRow(position=1, club_name="")])
        with pytest.raises(ValidationError, match="no populated"):
            ingest_season(store, submission_for(league, "2023-24", blank))
        self._assert_nothing_written(store)

    def test_unknown_league(self, store, league, make_rows):
        submission = SeasonSubmission(league_id=uuid4(), year="2023-24", divisions=[DivisionTable(rows=make_rows(4))])
        with pytest.raises(ValidationError, match="does not exist"):
            ingest_season(store, submission)

    def test_duplicate_positions(self, store, league):
        rows = [TableRow(position=1, club_name="A"), TableRow(position=1, club_name="B")]
        with pytest.raises(ValidationError, match="duplicate table positions"):
            ingest_season(store, submission_for(league, "2023-24", DivisionTable(rows=rows)))
        self._assert_nothing_written(store)

    def test_same_club_twice_in_a_division(self, store, league):
        rows = [TableRow(position=1, club_name="Ashby Town"), TableRow(position=2, club_name="ASHBY TOWN")]
        with pytest.raises(ValidationError, match="more than once"):
            ingest_season(store, submission_for(league, "2023-24", DivisionTable(rows=rows)))
        self._assert_nothing_written(store)

    def test_negative_spots(self, store, league, make_rows):
        division = DivisionTable(rows=make_rows(4), relegation_spots=-1)
        with pytest.raises(ValidationError, match="negative"):
            ingest_season(store, submission_for(league, "2023-24", division))

    def test_later_division_is_validated_before_first_is_written(self, store, second_tier_league, make_rows):
        good = DivisionTable(division_name="North", rows=make_rows(4))
        bad = DivisionTable(division_name="South", rows=[TableRow(position=1, club_name="X"),
                                                         TableRow(position=1, club_name="Y")])
        with pytest.raises(ValidationError):
            ingest_season(store, submission_for(second_tier_league, "2023-24", good, bad))
        self._assert_nothing_written(store)


class TestMultiDivision:
    """Tests for submissions with several division tables."""

    def test_every_division_is_reported(self, store, second_tier_league, make_rows):
        north = DivisionTable(division_name="North", rows=make_rows(4))
        south = DivisionTable(division_name="South", rows=make_rows(4, names=["E", "F", "G", "H"]))
        result = ingest_season(store, submission_for(second_tier_league, "2023-24", north, south))

        assert [d.division_name for d in result.divisions] == ["North", "South"]
        assert result.season_id == result.divisions[0].season_id
        assert result.divisions[0].season_id != result.divisions[1].season_id
        assert all(d.tier == 2 for d in result.divisions)
        assert len(result.club_ids) == 8

    def test_stability_only_requested_for_single_division(self, store, second_tier_league, make_rows):
        stability = RecordingStability()

        north = DivisionTable(division_name="North", rows=make_rows(4))
        south = DivisionTable(division_name="South", rows=make_rows(4, names=["E", "F", "G", "H"]))
        ingest_season(store, submission_for(second_tier_league, "2022-23", north, south), stability=stability)
        assert stability.calls == []

        result = ingest_season(
            store,
            submission_for(second_tier_league, "2023-24", DivisionTable(division_name="North", rows=make_rows(4))),
            stability=stability,
        )
        assert stability.calls == [result.club_ids]

    def test_division_failure_names_the_division(self, store, second_tier_league, make_rows, monkeypatch):
        def failing_bulk_create(model, records):
            raise PersistenceError("disk full")

        monkeypatch.setattr(store, "bulk_create", failing_bulk_create)
        north = DivisionTable(division_name="North", rows=make_rows(4))

        with pytest.raises(PersistenceError) as exc_info:
            ingest_season(store, submission_for(second_tier_league, "2023-24", north))

        assert exc_info.value.division == "North"
        assert "disk full" in str(exc_info.value)


class TestHelpers:
    def test_compute_delta_passes_results_through(self):
        row = TableRow(position=2, club_name="A", won=5, drawn=1, lost=2, goals_for=9,
                       goals_against=4, points=16, status=FinishStatus.PLAYOFF_WINNER)
        delta = compute_delta(row, uuid4(), "2023-24", tier=3)

        assert (delta.won, delta.drawn, delta.lost, delta.points) == (5, 1, 2, 16)
        assert delta.is_promoted
        assert delta.is_lower_competition_tier
        assert not delta.is_top_tier

    def test_summary_counts_playoff_winner_as_promoted(self):
        rows = [
            TableRow(position=1, club_name="A", status=FinishStatus.CHAMPION),
            TableRow(position=2, club_name="B", status=FinishStatus.PROMOTED),
            TableRow(position=3, club_name="C", status=FinishStatus.PLAYOFF_WINNER),
            TableRow(position=4, club_name="D", status=FinishStatus.RELEGATED),
        ]
        summary = summarize_division(rows)
        assert summary["promoted_teams"] == "B, C"
        assert summary["relegated_teams"] == "D"

    def test_load_submission_rejects_bad_json(self, tmp_path):
        path = tmp_path / "season.json"
        path.write_text('{"year": "2023-24"}')
        with pytest.raises(ValidationError, match="Invalid submission"):
            load_submission(path)

    def test_load_submission(self, tmp_path):
        league_id = uuid4()
        path = tmp_path / "season.json"
        path.write_text(
            '{"league_id": "%s", "year": "2023-24", "divisions": '
            '[{"rows": [{"position": 1, "club_name": "A", "won": 3}]}]}' % league_id
        )
        submission = load_submission(path)
        assert submission.league_id == league_id
        assert submission.divisions[0].rows[0].played == 3


@pytest.mark.integration
class TestTransaction:
    """The runner applies a submission completely or not at all."""

    def _seed_league(self):
        with get_sync_session() as session:
            store = SqlAlchemyStore(session)
            nation = store.create(Nation, {"name": "Turuliand", "membership": "VCC"})
            return store.create(League, {"nation_id": nation.id, "name": "Premier", "tier": 1}).id

    def test_failed_submission_rolls_back(self, bound_engine, make_rows, monkeypatch):
        league_id = self._seed_league()

        def failing_bulk_create(self, model, records):
            raise PersistenceError("connection lost")

        monkeypatch.setattr(SqlAlchemyStore, "bulk_create", failing_bulk_create)
        submission = SeasonSubmission(league_id=league_id, year="2023-24",
                                      divisions=[DivisionTable(rows=make_rows(6))])

        with pytest.raises(PersistenceError):
            run_season_ingest(submission)

        with get_sync_session() as session:
            store = SqlAlchemyStore(session)
            assert store.filter(Season) == []
            assert store.filter(Club) == []
            assert len(store.filter(League)) == 1

    def test_successful_submission_commits(self, bound_engine, make_rows):
        league_id = self._seed_league()
        submission = SeasonSubmission(league_id=league_id, year="2023-24",
                                      divisions=[DivisionTable(rows=make_rows(6))])

        result = run_season_ingest(submission)

        with get_sync_session() as session:
            store = SqlAlchemyStore(session)
            assert len(store.filter(LeagueTableEntry, {"season_id": result.season_id})) == 6
            club = store.filter(Club, {"name": "Vorlan United"})[0]
            assert club.stability_points is not None
