"""
Unit tests for ELO math: percentile mapping, tiers, K-factor, overall ELO
"""
import math

import pytest

from src.elo.math import (
    ELO_CONSTANTS,
    TIER_ORDER,
    calculate_elo_change,
    calculate_k_factor,
    calculate_new_rating,
    calculate_overall_elo,
    clamp_elo,
    elo_from_percentile,
    elo_to_tier,
    expected_score,
    is_valid_elo,
    percentile_from_elo,
)


class TestPercentileMapping:
    """Test the logistic percentile <-> ELO mapping"""

    def test_median_maps_to_base_rating(self):
        assert elo_from_percentile(50) == pytest.approx(500.0)

    def test_sixtieth_percentile(self):
        """ln(0.6/0.4) * 400 + 500 ~= 662"""
        assert elo_from_percentile(60) == pytest.approx(500 + 400 * math.log(1.5))
        assert round(elo_from_percentile(60)) == 662

    def test_high_percentiles(self):
        assert elo_from_percentile(95) == pytest.approx(1677.8, abs=0.5)
        assert elo_from_percentile(99) == pytest.approx(2338.0, abs=0.5)

    def test_extremes_are_clamped(self):
        assert elo_from_percentile(0) == ELO_CONSTANTS['MIN_RATING']
        assert elo_from_percentile(100) == ELO_CONSTANTS['MAX_RATING']

    def test_monotonic(self):
        elos = [elo_from_percentile(p) for p in range(0, 101)]
        assert all(b >= a for a, b in zip(elos, elos[1:]))

    @pytest.mark.parametrize("percentile", [25, 50, 75, 90, 99])
    def test_round_trip(self, percentile):
        """Holds wherever the rating is not clamped (roughly P23-P99.8)"""
        assert percentile_from_elo(elo_from_percentile(percentile)) == pytest.approx(percentile, abs=1e-6)


class TestTiers:

    @pytest.mark.parametrize("elo,tier", [
        (0, 'beginner'),
        (499.99, 'beginner'),
        (500, 'intermediate'),
        (999, 'intermediate'),
        (1001, 'advanced'),
        (1500, 'expert'),
        (2499, 'master'),
        (2500, 'legendary'),
        (3000, 'legendary'),
    ])
    def test_tier_boundaries(self, elo, tier):
        assert elo_to_tier(elo) == tier

    def test_tier_order(self):
        assert TIER_ORDER == ['beginner', 'intermediate', 'advanced', 'expert', 'master', 'legendary']


class TestHeadToHead:

    def test_expected_score_equal_ratings(self):
        assert expected_score(1200, 1200) == pytest.approx(0.5)

    def test_expected_scores_sum_to_one(self):
        assert expected_score(1400, 1000) + expected_score(1000, 1400) == pytest.approx(1.0)

    def test_new_rating(self):
        assert calculate_new_rating(1000, 0.5, 1.0) == pytest.approx(1016.0)

    def test_new_rating_clamped(self):
        assert calculate_new_rating(2995, 0.0, 1.0) == ELO_CONSTANTS['MAX_RATING']

    @pytest.mark.parametrize("elo,games,expected", [
        (800, 0, 32.0),
        (1200, 0, 28.8),
        (1600, 0, 24.0),
        (2200, 0, 16.0),
        (2200, 150, 12.8),
        (800, 60, 28.8),
    ])
    def test_k_factor(self, elo, games, expected):
        assert calculate_k_factor(elo, games) == pytest.approx(expected)

    def test_k_factor_floor(self):
        assert calculate_k_factor(2900, 1000) >= ELO_CONSTANTS['MIN_K_FACTOR']


class TestEloChange:

    def test_improvement_increases_elo(self):
        population = [80, 90, 100, 110, 120]
        new_elo, change = calculate_elo_change(90, 110, population, True, 1000.0)
        assert change > 0
        assert new_elo == pytest.approx(1000.0 + change)

    def test_lower_is_better_improvement(self):
        population = [300, 320, 340, 360, 380]
        _, change = calculate_elo_change(360, 320, population, False, 1000.0)
        assert change > 0


class TestOverallElo:

    def test_equal_weights(self):
        assert calculate_overall_elo({'a': 1000, 'b': 1200}) == pytest.approx(1100.0)

    def test_custom_weights(self):
        assert calculate_overall_elo({'a': 1000, 'b': 1200}, {'a': 3, 'b': 1}) == pytest.approx(1050.0)

    def test_missing_weight_falls_back_to_equal_share(self):
        result = calculate_overall_elo({'a': 1000, 'b': 2000}, {'a': 0.5})
        assert result == pytest.approx(1500.0)

    def test_empty(self):
        assert calculate_overall_elo({}) == ELO_CONSTANTS['BASE_RATING']

    def test_zero_total_weight(self):
        assert calculate_overall_elo({'a': 1000}, {'a': 0}) == ELO_CONSTANTS['BASE_RATING']


class TestValidation:

    def test_clamp(self):
        assert clamp_elo(-10) == 0
        assert clamp_elo(5000) == 3000
        assert clamp_elo(1234.5) == 1234.5

    @pytest.mark.parametrize("value,valid", [
        (0, True), (3000, True), (1500.5, True),
        (-1, False), (3001, False), (float('nan'), False), (float('inf'), False), ('1000', False),
    ])
    def test_is_valid_elo(self, value, valid):
        assert is_valid_elo(value) is valid
