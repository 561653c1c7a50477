"""
Finish Status Classification
============================

Maps a table position and the season's spot configuration to a finish status.

RULES (first match wins):
1. position 1                                  -> champion
2. position <= promotion_spots                 -> promoted
3. playoff_start <= position <= playoff_end    -> playoff (both bounds set)
4. position > team_count - relegation_spots    -> relegated
5. otherwise                                   -> none

`playoff_winner` is never derived from a position. Callers set it by hand and
it counts exactly like `promoted` everywhere downstream.
"""

from typing import TYPE_CHECKING, Dict, List, Mapping, Optional

from almanac.models import FinishStatus

if TYPE_CHECKING:
    from almanac.schemas import TableRow


DEFAULT_HIGHLIGHT_COLORS: Dict[str, str] = {
    FinishStatus.CHAMPION.value: "#fef3c7",
    FinishStatus.PROMOTED.value: "#d1fae5",
    FinishStatus.PLAYOFF_WINNER.value: "#d1fae5",
    FinishStatus.PLAYOFF.value: "#dbeafe",
    FinishStatus.RELEGATED.value: "#fee2e2",
    FinishStatus.NONE.value: "",
}

PROMOTING_STATUSES = frozenset({FinishStatus.PROMOTED, FinishStatus.PLAYOFF_WINNER})


def classify_position(
    position: int,
    team_count: int,
    promotion_spots: int,
    relegation_spots: int,
    playoff_start: Optional[int] = None,
    playoff_end: Optional[int] = None,
) -> FinishStatus:
    """Classify a single table position."""
    if position == 1:
        return FinishStatus.CHAMPION
    if position <= promotion_spots:
        return FinishStatus.PROMOTED
    if playoff_start is not None and playoff_end is not None and playoff_start <= position <= playoff_end:
        return FinishStatus.PLAYOFF
    if position > team_count - relegation_spots:
        return FinishStatus.RELEGATED
    return FinishStatus.NONE


def highlight_color(status: FinishStatus, colors: Optional[Mapping[str, str]] = None) -> str:
    """Resolve the highlight colour for a status, falling back to the defaults."""
    key = FinishStatus(status).value
    if colors and key in colors:
        return colors[key]
    return DEFAULT_HIGHLIGHT_COLORS.get(key, "")


def classify_row(
    row: "TableRow",
    team_count: int,
    promotion_spots: int,
    relegation_spots: int,
    playoff_start: Optional[int] = None,
    playoff_end: Optional[int] = None,
    colors: Optional[Mapping[str, str]] = None,
) -> "TableRow":
    """
    Return the row with status and highlight colour filled in.

    A status already set on the row (manual override such as playoff_winner)
    is kept; only its colour is resolved.
    """
    status = row.status
    if status is None:
        status = classify_position(
            row.position, team_count, promotion_spots, relegation_spots,
            playoff_start, playoff_end,
        )
    color = row.highlight_color or highlight_color(status, colors)
    return row.with_changes(status=status, highlight_color=color)


def apply_auto_status(
    rows: List["TableRow"],
    promotion_spots: int,
    relegation_spots: int,
    playoff_start: Optional[int] = None,
    playoff_end: Optional[int] = None,
    colors: Optional[Mapping[str, str]] = None,
    team_count: Optional[int] = None,
) -> List["TableRow"]:
    """Reclassify every row from its position, discarding any previous status."""
    count = team_count if team_count is not None else len(rows)
    result = []
    for row in rows:
        status = classify_position(
            row.position, count, promotion_spots, relegation_spots,
            playoff_start, playoff_end,
        )
        result.append(row.with_changes(status=status, highlight_color=highlight_color(status, colors)))
    return result
