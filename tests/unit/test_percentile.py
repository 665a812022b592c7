"""
Unit tests for population percentile calculation
"""
import numpy as np
import pytest

from src.stats.percentile import (
    NO_DATA_PERCENTILE,
    calculate_percentile,
    calculate_user_percentile,
    calculate_user_percentiles,
    percentile_to_tier,
)


class TestCalculatePercentile:
    """Test percentile of a value within a population"""

    def test_documented_example(self):
        """100 in [80, 90, 100, 110, 120] matches or beats 3 of 5"""
        result = calculate_percentile([80, 90, 100, 110, 120], 100)
        assert result.percentile == pytest.approx(60.0)
        assert result.rank == 3
        assert result.total_count == 5
        assert result.has_data

    def test_input_order_does_not_matter(self):
        ordered = calculate_percentile([80, 90, 100, 110, 120], 105)
        shuffled = calculate_percentile([110, 80, 120, 100, 90], 105)
        assert ordered.percentile == pytest.approx(shuffled.percentile)

    def test_empty_population_is_neutral(self):
        result = calculate_percentile([], 100)
        assert result.percentile == NO_DATA_PERCENTILE
        assert result.total_count == 0
        assert not result.has_data

    def test_ties_count_as_matched(self):
        result = calculate_percentile([100, 100, 100, 100], 100)
        assert result.percentile == pytest.approx(100.0)

    def test_lower_is_better_ties_count_as_matched(self):
        result = calculate_percentile([100, 100, 100, 100], 100, higher_is_better=False)
        assert result.percentile == pytest.approx(100.0)

    def test_interpolates_between_neighbours(self):
        """105 sits halfway between 100 (60%) and 110 (80%)"""
        result = calculate_percentile([80, 90, 100, 110, 120], 105)
        assert result.percentile == pytest.approx(70.0)

    def test_below_and_above_population(self):
        values = [80, 90, 100, 110, 120]
        assert calculate_percentile(values, 10).percentile == pytest.approx(0.0)
        assert calculate_percentile(values, 500).percentile == pytest.approx(100.0)

    def test_lower_is_better(self):
        """A faster time (smaller) beats more of the population"""
        times = [300, 320, 340, 360, 380]
        fast = calculate_percentile(times, 300, higher_is_better=False)
        slow = calculate_percentile(times, 380, higher_is_better=False)
        assert fast.percentile == pytest.approx(100.0)
        assert slow.percentile == pytest.approx(20.0)

    def test_lower_is_better_interpolates(self):
        times = [300, 320, 340, 360, 380]
        result = calculate_percentile(times, 330, higher_is_better=False)
        # 320 -> 80%, 340 -> 60%
        assert result.percentile == pytest.approx(70.0)

    @pytest.mark.parametrize("higher_is_better", [True, False])
    def test_monotonic(self, higher_is_better):
        rng = np.random.default_rng(42)
        values = rng.normal(100, 15, size=200).tolist()
        targets = np.linspace(40, 160, 121)
        percentiles = [calculate_percentile(values, t, higher_is_better).percentile for t in targets]

        diffs = np.diff(percentiles)
        if higher_is_better:
            assert (diffs >= -1e-9).all()
        else:
            assert (diffs <= 1e-9).all()

    def test_bounded(self):
        rng = np.random.default_rng(7)
        values = rng.uniform(0, 1000, size=50).tolist()
        for target in [-1e6, 0, 500, 999.9, 1e6]:
            for higher_is_better in (True, False):
                p = calculate_percentile(values, target, higher_is_better).percentile
                assert 0.0 <= p <= 100.0

    def test_nan_values_ignored(self):
        result = calculate_percentile([80, float('nan'), 100], 100)
        assert result.total_count == 2
        assert result.percentile == pytest.approx(100.0)


class TestUserPercentiles:
    """Test user-level helpers"""

    def test_user_percentile(self):
        entries = [
            {'user_id': 'a', 'value': 80},
            {'user_id': 'b', 'value': 100},
            {'user_id': 'c', 'value': 120},
        ]
        result = calculate_user_percentile(entries, 'b')
        assert result.percentile == pytest.approx(200 / 3)

    def test_user_percentile_missing_user(self):
        assert calculate_user_percentile([{'user_id': 'a', 'value': 1}], 'zzz') is None

    def test_user_percentiles_skip_unknown_metrics(self):
        results = calculate_user_percentiles(
            {'bench_press': 100, 'mile_run': 400, 'unknown': 1},
            {'bench_press': [80, 100, 120], 'mile_run': [360, 400, 480]},
            {'bench_press': {'higher_is_better': True}, 'mile_run': {'higher_is_better': False}},
        )
        assert set(results) == {'bench_press', 'mile_run'}
        assert results['mile_run'].percentile == pytest.approx(200 / 3)


class TestPercentileTiers:

    @pytest.mark.parametrize("percentile,tier", [
        (99, 'diamond'),
        (95, 'diamond'),
        (90, 'platinum'),
        (70, 'gold'),
        (50, 'silver'),
        (25, 'bronze'),
        (10, 'unranked'),
    ])
    def test_tier_boundaries(self, percentile, tier):
        assert percentile_to_tier(percentile) == tier
