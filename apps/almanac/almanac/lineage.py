"""
Club Lineage
============

Merges a club's career with the records of its historical identities.

RELATIONS:
- former name: the same club under an earlier name. Counters are summed
  into the merged view.
- predecessor: a different club whose history this one continues. Its
  seasons appear in the combined history but its counters are never summed.

Links are maintained in both directions (former_name_club_id <->
current_name_club_id, predecessor_club_id <-> successor_club_id) and never
form cycles. A linked id that no longer resolves contributes nothing.
"""

import logging
from typing import Any, Iterable, List, Optional, Set
from uuid import UUID

from almanac.accumulator import is_better_finish
from almanac.errors import LineageCycleError, ValidationError
from almanac.models import Club, LeagueTableEntry
from almanac.schemas import BestFinish, MergedClubStats
from almanac.store import Store

logger = logging.getLogger(__name__)

SUMMED_FIELDS = (
    "league_titles",
    "lower_tier_titles",
    "seasons_played",
    "seasons_top_flight",
    "seasons_in_tfa",
    "total_wins",
    "total_draws",
    "total_losses",
    "total_goals_scored",
    "total_goals_conceded",
    "promotions",
    "relegations",
    "domestic_cup_titles",
    "domestic_cup_runner_up",
    "vcc_titles",
    "vcc_runner_up",
    "vcc_appearances",
    "ccc_titles",
    "ccc_runner_up",
    "ccc_appearances",
)

YEAR_FIELDS = (
    "title_years",
    "lower_tier_title_years",
    "domestic_cup_title_years",
    "vcc_title_years",
    "ccc_title_years",
)

FALLBACK_FIELDS = (
    "vcc_best_finish",
    "ccc_best_finish",
    "domestic_cup_best_finish",
)

FORMER_NAME_SLOTS = ("former_name_club_id", "former_name_club_2_id")
PREDECESSOR_SLOTS = ("predecessor_club_id", "predecessor_club_2_id")


# =============================================================================
# MERGING
# =============================================================================

def merge_year_strings(*values: Optional[str]) -> Optional[str]:
    """
    Merge comma-joined year strings: deduplicated, ascending, rejoined.

    >>> merge_year_strings("1990", "1990, 1995")
    '1990, 1995'
    """
    years: Set[str] = set()
    for value in values:
        if not value:
            continue
        years.update(part.strip() for part in value.split(",") if part.strip())
    return ", ".join(sorted(years)) or None


def merge_best_finish(records: Iterable[Any]) -> BestFinish:
    """Best (position, tier, year) among records with a recorded position."""
    best = BestFinish()
    for record in records:
        position = getattr(record, "best_finish", None)
        if position is None:
            continue
        tier = getattr(record, "best_finish_tier", None)
        if is_better_finish(position, tier, best.position, best.tier):
            best = BestFinish(position=position, tier=tier, year=getattr(record, "best_finish_year", None))
    return best


def merge_lineage(current: Club, former_names: Iterable[Optional[Club]]) -> MergedClubStats:
    """
    Merge a club with its former-name records.

    Args:
        current: The club as it is known today
        former_names: Former-name records; None entries are ignored

    Returns:
        MergedClubStats for display and ranking
    """
    records = [current] + [r for r in former_names if r is not None]

    merged = MergedClubStats(
        club_id=current.id,
        name=current.name,
        nation_id=getattr(current, "nation_id", None),
        region=getattr(current, "region", None),
        district=getattr(current, "district", None),
        settlement=getattr(current, "settlement", None),
        contributing_club_ids=[r.id for r in records],
        best_finish=merge_best_finish(records),
    )

    for field in SUMMED_FIELDS:
        setattr(merged, field, sum(getattr(r, field, None) or 0 for r in records))

    for field in YEAR_FIELDS:
        setattr(merged, field, merge_year_strings(*(getattr(r, field, None) for r in records)))

    for field in FALLBACK_FIELDS:
        setattr(merged, field, next((getattr(r, field) for r in records if getattr(r, field, None)), None))

    return merged


def former_name_records(store: Store, club: Club) -> List[Optional[Club]]:
    return [store.get(Club, getattr(club, slot)) for slot in FORMER_NAME_SLOTS]


def predecessor_records(store: Store, club: Club) -> List[Optional[Club]]:
    return [store.get(Club, getattr(club, slot)) for slot in PREDECESSOR_SLOTS]


def resolve_lineage(store: Store, club: Club) -> MergedClubStats:
    """Merged career of a club and its former names."""
    return merge_lineage(club, former_name_records(store, club))


def combined_season_history(store: Store, club: Club) -> List[LeagueTableEntry]:
    """
    Table entries of the club, its predecessors and its former names.

    Sorted by year descending. Years present in several sources are kept,
    but a record linked through more than one slot is read once.
    """
    source_ids = [club.id]
    source_ids += [getattr(club, slot) for slot in PREDECESSOR_SLOTS]
    source_ids += [getattr(club, slot) for slot in FORMER_NAME_SLOTS]

    entries: List[LeagueTableEntry] = []
    for source_id in dict.fromkeys(source_ids):
        if source_id is None:
            continue
        entries.extend(store.filter(LeagueTableEntry, {"club_id": source_id}))

    return sorted(entries, key=lambda e: e.year, reverse=True)


# =============================================================================
# LINKING
# =============================================================================

def _ancestors_reach(store: Store, start: Club, target_id: UUID) -> bool:
    """True if target_id is reachable from start through predecessor or former-name links."""
    stack = [start]
    seen: Set[UUID] = set()
    while stack:
        node = stack.pop()
        if node.id == target_id:
            return True
        if node.id in seen:
            continue
        seen.add(node.id)
        for slot in PREDECESSOR_SLOTS + FORMER_NAME_SLOTS:
            linked = store.get(Club, getattr(node, slot))
            if linked is not None:
                stack.append(linked)
    return False


def _load_pair(store: Store, club_id: UUID, other_id: UUID) -> tuple:
    if club_id == other_id:
        raise ValidationError("A club cannot be linked to itself")
    club = store.get(Club, club_id)
    other = store.get(Club, other_id)
    if club is None or other is None:
        missing = club_id if club is None else other_id
        raise ValidationError(f"Club {missing} does not exist")
    return club, other


def _free_slot(club: Club, slots: tuple, label: str) -> str:
    for slot in slots:
        if getattr(club, slot) is None:
            return slot
    raise ValidationError(f"{club.name} already has {len(slots)} {label} links")


def link_former_name(store: Store, club_id: UUID, former_id: UUID) -> Club:
    """
    Record `former_id` as an earlier name of `club_id`.

    Raises:
        ValidationError: self link, missing club, no free slot, or the link
            would make a club both a current name and a former name
        LineageCycleError: the club is already an ancestor of the former name
    """
    club, former = _load_pair(store, club_id, former_id)

    if former.id in (getattr(club, slot) for slot in FORMER_NAME_SLOTS):
        return club

    if club.current_name_club_id is not None:
        raise ValidationError(f"{club.name} is itself a former name and cannot have former names")
    if any(getattr(former, slot) is not None for slot in FORMER_NAME_SLOTS):
        raise ValidationError(f"{former.name} has former names and cannot be a former name")
    if former.current_name_club_id is not None:
        raise ValidationError(f"{former.name} is already a former name of another club")
    if former.id in (getattr(club, slot) for slot in PREDECESSOR_SLOTS):
        raise ValidationError(f"{former.name} is already a predecessor of {club.name}")

    slot = _free_slot(club, FORMER_NAME_SLOTS, "former-name")

    if _ancestors_reach(store, former, club.id):
        raise LineageCycleError(f"Linking {former.name} as a former name of {club.name} creates a cycle")

    store.update(Club, former.id, {"current_name_club_id": club.id})
    club = store.update(Club, club.id, {slot: former.id})
    logger.info(f"Linked former name {former.name} -> {club.name}")
    return club


def link_predecessor(store: Store, club_id: UUID, predecessor_id: UUID) -> Club:
    """
    Record `predecessor_id` as a predecessor of `club_id`.

    Raises:
        ValidationError: self link, missing club, no free slot, the
            predecessor already has a successor or is a former name of
            the club
        LineageCycleError: the club is already an ancestor of the predecessor
    """
    club, predecessor = _load_pair(store, club_id, predecessor_id)

    if predecessor.id in (getattr(club, slot) for slot in PREDECESSOR_SLOTS):
        return club

    if predecessor.successor_club_id is not None:
        raise ValidationError(f"{predecessor.name} already has a successor")
    if predecessor.id in (getattr(club, slot) for slot in FORMER_NAME_SLOTS):
        raise ValidationError(f"{predecessor.name} is already a former name of {club.name}")

    slot = _free_slot(club, PREDECESSOR_SLOTS, "predecessor")

    if _ancestors_reach(store, predecessor, club.id):
        raise LineageCycleError(f"Linking {predecessor.name} as a predecessor of {club.name} creates a cycle")

    store.update(Club, predecessor.id, {"successor_club_id": club.id})
    club = store.update(Club, club.id, {slot: predecessor.id})
    logger.info(f"Linked predecessor {predecessor.name} -> {club.name}")
    return club
