"""
Almanac Jobs
============

Individual job modules:
- ingest: Season submission ingestion
- sync: Club career rebuild from league tables
- honours: Cup season ingestion and cup/continental honours rebuild
- stability: Club stability recalculation
- rankings: Location and nation rankings
"""

from almanac.jobs.ingest import ingest_season, run_season_ingest
from almanac.jobs.sync import rebuild_club_stats, run_club_sync
from almanac.jobs.honours import ingest_cup_season, rebuild_honours, run_cup_ingest, run_honours_sync
from almanac.jobs.stability import TableStabilityRecalculator, run_stability_recalculation
from almanac.jobs.rankings import run_location_rankings, run_nation_rankings

__all__ = [
    "ingest_season",
    "run_season_ingest",
    "rebuild_club_stats",
    "run_club_sync",
    "ingest_cup_season",
    "rebuild_honours",
    "run_cup_ingest",
    "run_honours_sync",
    "TableStabilityRecalculator",
    "run_stability_recalculation",
    "run_location_rankings",
    "run_nation_rankings",
]
