"""
Core ELO math: logistic mapping between percentile and a 0-3000 rating.

Median population performance maps to 500, P95 to ~1680, P99 to ~2340.
Classic head-to-head helpers (expected score, K-factor) are kept for live
comparisons; the recompute path is percentile-driven.
"""
from __future__ import annotations

import math
from typing import Dict, Optional, Sequence, Tuple

from src.stats.percentile import calculate_percentile

ELO_CONSTANTS = {
    'K_FACTOR': 32,        # Base K-factor for rating changes
    'BASE_RATING': 500,    # Rating at the population median
    'MAX_RATING': 3000,
    'MIN_RATING': 0,
    'SCALE_FACTOR': 400,   # Logistic scale
    'MIN_K_FACTOR': 8,
}

# Percentile fraction is clamped to this range before the logit
PERCENTILE_CLAMP = (0.001, 0.999)

# (threshold, tier): first threshold the rating is below wins
TIER_THRESHOLDS = [
    (500, 'beginner'),
    (1000, 'intermediate'),
    (1500, 'advanced'),
    (2000, 'expert'),
    (2500, 'master'),
]
TOP_TIER = 'legendary'
TIER_ORDER = [tier for _, tier in TIER_THRESHOLDS] + [TOP_TIER]


def clamp_elo(elo: float) -> float:
    return max(ELO_CONSTANTS['MIN_RATING'], min(ELO_CONSTANTS['MAX_RATING'], elo))


def elo_from_percentile(percentile: float) -> float:
    """
    Convert percentile (0-100) to ELO rating (0-3000).

    rating = 500 + 400 * ln(p / (1 - p)), p clamped to [0.001, 0.999].
    """
    p = max(PERCENTILE_CLAMP[0], min(PERCENTILE_CLAMP[1], percentile / 100))
    logit = math.log(p / (1 - p))
    elo = ELO_CONSTANTS['BASE_RATING'] + logit * ELO_CONSTANTS['SCALE_FACTOR']
    return clamp_elo(elo)


def percentile_from_elo(elo: float) -> float:
    """Inverse of elo_from_percentile, clamped to 0-100"""
    normalized = (elo - ELO_CONSTANTS['BASE_RATING']) / ELO_CONSTANTS['SCALE_FACTOR']
    p = 1 / (1 + math.exp(-normalized))
    return max(0.0, min(100.0, p * 100))


def expected_score(rating_a: float, rating_b: float) -> float:
    """Expected score for player A against player B (0-1)"""
    rating_diff = rating_b - rating_a
    return 1 / (1 + math.pow(10, rating_diff / ELO_CONSTANTS['SCALE_FACTOR']))


def calculate_new_rating(
    current_rating: float,
    expected: float,
    actual: float,
    k_factor: float = ELO_CONSTANTS['K_FACTOR']
) -> float:
    return clamp_elo(current_rating + k_factor * (actual - expected))


def calculate_k_factor(current_elo: float, games_played: int) -> float:
    """
    K-factor dampened for high ratings and experienced users.

    Never drops below 8.
    """
    k_factor = float(ELO_CONSTANTS['K_FACTOR'])

    if current_elo >= 2000:
        k_factor *= 0.5
    elif current_elo >= 1500:
        k_factor *= 0.75
    elif current_elo >= 1000:
        k_factor *= 0.9

    if games_played >= 100:
        k_factor *= 0.8
    elif games_played >= 50:
        k_factor *= 0.9
    elif games_played >= 20:
        k_factor *= 0.95

    return max(ELO_CONSTANTS['MIN_K_FACTOR'], k_factor)


def calculate_elo_change(
    old_value: float,
    new_value: float,
    all_values: Sequence[float],
    higher_is_better: bool,
    current_elo: float
) -> Tuple[float, float]:
    """
    ELO change implied by a single measurement improving from old_value to new_value.

    Returns:
        (new_elo, change) where new_elo is current_elo shifted by the change, clamped.
    """
    old_percentile = calculate_percentile(all_values, old_value, higher_is_better)
    new_percentile = calculate_percentile(all_values, new_value, higher_is_better)

    change = elo_from_percentile(new_percentile.percentile) - elo_from_percentile(old_percentile.percentile)
    return clamp_elo(current_elo + change), change


def calculate_overall_elo(
    category_elos: Dict[str, float],
    weights: Optional[Dict[str, float]] = None
) -> float:
    """Weighted mean of category ELOs; equal weights unless given"""
    if not category_elos:
        return float(ELO_CONSTANTS['BASE_RATING'])

    default_weight = 1 / len(category_elos)
    weights = weights or {}

    total_weight = 0.0
    weighted_sum = 0.0
    for category_id, elo in category_elos.items():
        weight = weights.get(category_id, default_weight)
        weighted_sum += elo * weight
        total_weight += weight

    if total_weight == 0:
        return float(ELO_CONSTANTS['BASE_RATING'])

    return weighted_sum / total_weight


def is_valid_elo(elo: float) -> bool:
    return (
        isinstance(elo, (int, float))
        and math.isfinite(elo)
        and ELO_CONSTANTS['MIN_RATING'] <= elo <= ELO_CONSTANTS['MAX_RATING']
    )


def elo_to_tier(elo: float) -> str:
    for threshold, tier in TIER_THRESHOLDS:
        if elo < threshold:
            return tier
    return TOP_TIER
