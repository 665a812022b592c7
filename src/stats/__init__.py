"""Population statistics"""

from src.stats.percentile import (
    PercentileResult,
    calculate_percentile,
    calculate_user_percentile,
    calculate_user_percentiles,
    percentile_to_tier,
)

__all__ = [
    'PercentileResult',
    'calculate_percentile',
    'calculate_user_percentile',
    'calculate_user_percentiles',
    'percentile_to_tier',
]
