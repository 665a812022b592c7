"""
Population percentile calculation

Percentiles are computed against a sorted copy of the population with
binary search (numpy.searchsorted), so large populations stay O(log n)
per lookup after the sort.

Tie convention: population values equal to the target count as matched,
i.e. the target "outperforms or matches" them. With higher_is_better the
percentile is the share of values <= target; with lower-is-better it is
the share of values >= target. A target falling strictly between two
population values is linearly interpolated between the two neighbouring
ranks.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence
import numpy as np

# Returned for an empty population; not a trustworthy measurement
NO_DATA_PERCENTILE = 50.0


@dataclass
class PercentileResult:
    percentile: float   # 0-100
    rank: int           # number of population values the target matches or beats
    total_count: int
    value: float
    has_data: bool = True


def _sorted_population(values: Sequence[float]) -> np.ndarray:
    arr = np.asarray(list(values), dtype=float)
    if arr.size == 0:
        return arr
    arr = arr[~np.isnan(arr)]
    return np.sort(arr)


def calculate_percentile(
    values: Sequence[float],
    target_value: float,
    higher_is_better: bool = True
) -> PercentileResult:
    """
    Calculate the percentile of target_value within a population.

    Args:
        values: Population values (any order)
        target_value: Value to rank
        higher_is_better: Whether higher values are better

    Returns:
        PercentileResult. An empty population yields percentile 50 with
        has_data=False instead of raising.

    Example:
        >>> calculate_percentile([80, 90, 100, 110, 120], 100).percentile
        60.0
    """
    sorted_values = _sorted_population(values)
    n = len(sorted_values)

    if n == 0:
        return PercentileResult(
            percentile=NO_DATA_PERCENTILE,
            rank=0,
            total_count=0,
            value=target_value,
            has_data=False,
        )

    target = float(target_value)

    if higher_is_better:
        # Count values <= target
        count = int(np.searchsorted(sorted_values, target, side="right"))
        exact_match = count > 0 and sorted_values[count - 1] == target
        lower_bound = sorted_values[count - 1] if count > 0 else None
        upper_bound = sorted_values[count] if count < n else None

        if not exact_match and lower_bound is not None and upper_bound is not None:
            lower_percentile = (count / n) * 100
            upper_percentile = ((count + 1) / n) * 100
            factor = (target - lower_bound) / (upper_bound - lower_bound)
            percentile = lower_percentile + (upper_percentile - lower_percentile) * factor
        else:
            percentile = (count / n) * 100
    else:
        # Count values >= target (higher values are worse)
        first_index = int(np.searchsorted(sorted_values, target, side="left"))
        count = n - first_index
        exact_match = first_index < n and sorted_values[first_index] == target
        upper_bound = sorted_values[first_index] if first_index < n else None
        lower_bound = sorted_values[first_index - 1] if first_index > 0 else None

        if not exact_match and lower_bound is not None and upper_bound is not None:
            upper_percentile = (count / n) * 100
            lower_percentile = ((count + 1) / n) * 100
            factor = (target - lower_bound) / (upper_bound - lower_bound)
            percentile = lower_percentile + (upper_percentile - lower_percentile) * factor
        else:
            percentile = (count / n) * 100

    return PercentileResult(
        percentile=float(min(100.0, max(0.0, percentile))),
        rank=count,
        total_count=n,
        value=target_value,
    )


def calculate_user_percentile(
    metric_entries: List[Dict],
    target_user_id: str,
    higher_is_better: bool = True
) -> Optional[PercentileResult]:
    """Percentile of one user's entry within a list of {'user_id', 'value'} entries"""
    target_entry = next((e for e in metric_entries if e.get("user_id") == target_user_id), None)
    if target_entry is None:
        return None

    values = [e["value"] for e in metric_entries]
    return calculate_percentile(values, target_entry["value"], higher_is_better)


def calculate_user_percentiles(
    user_metrics: Dict[str, float],
    all_metric_data: Dict[str, List[float]],
    metric_configs: Dict[str, Dict]
) -> Dict[str, PercentileResult]:
    """
    Calculate percentiles for a user across several metrics.

    Metrics missing from either the population data or the configs are skipped.
    """
    results = {}
    for metric_slug, user_value in user_metrics.items():
        all_values = all_metric_data.get(metric_slug)
        config = metric_configs.get(metric_slug)
        if all_values is None or config is None:
            continue
        results[metric_slug] = calculate_percentile(
            all_values,
            user_value,
            config.get("higher_is_better", True)
        )
    return results


# Percentile display tiers
PERCENTILE_TIER_THRESHOLDS = {
    'diamond': 95,
    'platinum': 85,
    'gold': 70,
    'silver': 50,
    'bronze': 25,
}


def percentile_to_tier(percentile: float) -> str:
    """Convert percentile to tier (bronze, silver, gold, platinum, diamond)"""
    for tier, threshold in PERCENTILE_TIER_THRESHOLDS.items():
        if percentile >= threshold:
            return tier
    return 'unranked'


def get_tier_thresholds() -> Dict[str, int]:
    return dict(PERCENTILE_TIER_THRESHOLDS)
