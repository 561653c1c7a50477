"""
Population Estimator Tests
==========================
"""

import pytest

from almanac.population import NationPopulationEstimator, format_population


@pytest.fixture
def estimator():
    return NationPopulationEstimator()


class TestNationPopulationEstimator:
    def test_no_clubs_is_unknown(self, estimator):
        estimate = estimator.estimate(0, 3, "VCC", 4)
        assert (estimate.value, estimate.display, estimate.tier) == (0, "0", "Unknown")

    def test_full_member_small_nation(self, estimator):
        # 10 * 75000 * 1.3 * 1.3
        estimate = estimator.estimate(10, 2, "VCC", 3)
        assert estimate.value == 1267500
        assert estimate.display == "1268K"
        assert estimate.tier == "Small Nation"

    def test_unaffiliated_medium_nation(self, estimator):
        # 40 * 50000 * 1.3 * 1.2
        estimate = estimator.estimate(40, 2, None, 2)
        assert estimate.value == 3120000
        assert estimate.display == "3.1M"
        assert estimate.tier == "Medium Nation"

    def test_major_power(self, estimator):
        # 100 * 75000 * 1.75 * 1.5
        estimate = estimator.estimate(100, 5, "VCC", 5)
        assert estimate.display == "19.7M"
        assert estimate.tier == "Major Power"

    def test_missing_tier_counts_as_one(self, estimator):
        assert estimator.estimate(4, 1, None, None).value == estimator.estimate(4, 1, None, 1).value

    def test_associate_members_use_smaller_base(self, estimator):
        full = estimator.estimate(10, 1, "VCC", 1).value
        associate = estimator.estimate(10, 1, "CCC", 1).value
        assert associate < full


class TestFormatPopulation:
    @pytest.mark.parametrize("value,display,tier", [
        (10_000_000, "10.0M", "Major Power"),
        (5_000_000, "5.0M", "Large Nation"),
        (2_000_000, "2.0M", "Medium Nation"),
        (500_000, "500K", "Small Nation"),
        (120_400, "120K", "Micro State"),
    ])
    def test_bands(self, value, display, tier):
        estimate = format_population(value)
        assert (estimate.display, estimate.tier) == (display, tier)
