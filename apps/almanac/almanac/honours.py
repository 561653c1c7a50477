"""
Cup Honours
===========

Derives a club's cup and continental honours from recorded cup seasons.

Per competition kind (domestic cup, VCC, CCC) each club gets titles and
title years, runner-up finishes, appearances (seasons with at least one tie)
and its best finish. The best finish is a round name ranked by ROUND_ORDER;
winning the cup is "Winner", losing the final is "Final", going out earlier is
the round of the lost tie. Unknown round names rank below every known one.

Like the accumulator, the functions here are pure and return field dicts.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple
from uuid import UUID

from almanac.models import CompetitionKind
from almanac.schemas import HonoursRecord

ROUND_ORDER = (
    "Winner",
    "Final",
    "Semi-final",
    "Quarter-final",
    "Round of 16",
    "Round of 32",
    "Round of 64",
    "Round of 128",
    "Group Stage",
    "Fifth Round",
    "Fourth Round",
    "Third Round",
    "Second Round",
    "First Round",
)

WINNER = "Winner"
FINAL = "Final"

# Resolves (season, club name, club id) to a club record, or None
ClubResolver = Callable[[Any, Optional[str], Optional[UUID]], Optional[Any]]


def is_round_better(new_round: Optional[str], current_round: Optional[str]) -> bool:
    """True if reaching `new_round` beats a best finish of `current_round`."""
    if new_round is None:
        return False
    if current_round is None:
        return True
    if new_round not in ROUND_ORDER:
        return False
    if current_round not in ROUND_ORDER:
        return True
    return ROUND_ORDER.index(new_round) < ROUND_ORDER.index(current_round)


def offer_finish(record: HonoursRecord, round_name: Optional[str], year: str) -> None:
    if is_round_better(round_name, record.best_finish):
        record.best_finish = round_name
        record.best_finish_year = year


def match_loser(match: Any) -> Tuple[Optional[str], Optional[UUID]]:
    """(name, club id) of the side that went out of a decided tie."""
    winner = (match.winner or "").strip().lower()
    if not winner:
        return None, None
    if winner == match.home_club_name.strip().lower():
        return match.away_club_name, match.away_club_id
    return match.home_club_name, match.home_club_id


def collect_honours(
    seasons: Iterable[Any],
    matches_by_season: Dict[UUID, List[Any]],
    resolve: ClubResolver,
) -> Dict[UUID, HonoursRecord]:
    """
    Build honours records for every club that took part in `seasons`.

    Args:
        seasons: Cup seasons of one competition kind
        matches_by_season: Ties by cup season id
        resolve: Maps a name/id reference to a club; unresolved names are skipped

    Returns:
        dict of club id -> HonoursRecord
    """
    records: Dict[UUID, HonoursRecord] = {}

    for season in sorted(seasons, key=lambda s: s.year):
        participants: Set[UUID] = set()

        def record_for(name: Optional[str], club_id: Optional[UUID]) -> Optional[HonoursRecord]:
            if not name and club_id is None:
                return None
            club = resolve(season, name, club_id)
            if club is None:
                return None
            participants.add(club.id)
            return records.setdefault(club.id, HonoursRecord())

        champion = record_for(season.champion_name, season.champion_id)
        if champion is not None:
            champion.titles += 1
            champion.title_years.append(season.year)
            offer_finish(champion, WINNER, season.year)

        runner_up = record_for(season.runner_up, season.runner_up_id)
        if runner_up is not None:
            runner_up.runner_up += 1
            offer_finish(runner_up, FINAL, season.year)

        for match in matches_by_season.get(season.id, []):
            record_for(match.home_club_name, match.home_club_id)
            record_for(match.away_club_name, match.away_club_id)

            loser = record_for(*match_loser(match))
            if loser is not None:
                offer_finish(loser, match.round, season.year)

        for club_id in participants:
            records[club_id].appearances += 1

    return records


def honours_fields(kind: CompetitionKind, record: HonoursRecord) -> Dict[str, Any]:
    """Club columns for one competition kind (domestic cups have no appearance counter)."""
    prefix = kind.value
    fields = {
        f"{prefix}_titles": record.titles,
        f"{prefix}_title_years": ", ".join(sorted(record.title_years)) or None,
        f"{prefix}_runner_up": record.runner_up,
        f"{prefix}_best_finish": record.best_finish,
    }
    if kind != CompetitionKind.DOMESTIC_CUP:
        fields[f"{prefix}_appearances"] = record.appearances
    return fields
