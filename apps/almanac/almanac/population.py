"""
Population Estimation
=====================

Estimates a nation's population from the size of its football structure.
Used to annotate nation rankings; never feeds back into any score.
"""

from typing import Any, Optional, Protocol

from almanac.models import Membership
from almanac.schemas import PopulationEstimate

BASE_PER_CLUB = {
    Membership.FULL.value: 75000,
    Membership.ASSOCIATE.value: 45000,
}
DEFAULT_BASE_PER_CLUB = 50000

# (threshold, unit divisor, tier label), first match wins
POPULATION_BANDS = (
    (10_000_000, 1_000_000, "Major Power"),
    (5_000_000, 1_000_000, "Large Nation"),
    (2_000_000, 1_000_000, "Medium Nation"),
    (500_000, 1_000, "Small Nation"),
    (0, 1_000, "Micro State"),
)


class PopulationEstimator(Protocol):
    def estimate(
        self,
        club_count: int,
        league_count: int,
        membership: Optional[str],
        max_tier: Optional[int],
        geography: Any = None,
    ) -> PopulationEstimate:
        ...


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def format_population(value: int) -> PopulationEstimate:
    for threshold, divisor, tier in POPULATION_BANDS:
        if value >= threshold:
            if divisor == 1_000_000:
                display = f"{value / divisor:.1f}M"
            else:
                display = f"{_round_half_up(value / divisor)}K"
            return PopulationEstimate(value=value, display=display, tier=tier)
    return PopulationEstimate(value=value, display="0", tier="Unknown")


class NationPopulationEstimator:
    """
    Club-count based estimate.

    value = clubs * base_per_club * (1 + 0.15 * leagues) * (1 + 0.1 * max_tier)
    where base_per_club is 75k for VCC members, 45k for CCC members, else 50k.
    """

    def estimate(
        self,
        club_count: int,
        league_count: int,
        membership: Optional[str],
        max_tier: Optional[int],
        geography: Any = None,
    ) -> PopulationEstimate:
        if club_count <= 0:
            return PopulationEstimate(value=0, display="0", tier="Unknown")

        base = BASE_PER_CLUB.get(membership or "", DEFAULT_BASE_PER_CLUB)
        league_multiplier = 1 + league_count * 0.15
        tier_multiplier = 1 + (max_tier or 1) * 0.1

        return format_population(_round_half_up(club_count * base * league_multiplier * tier_multiplier))
