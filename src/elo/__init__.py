"""ELO rating and recompute engine"""

from src.elo.math import (
    elo_from_percentile,
    percentile_from_elo,
    elo_to_tier,
    calculate_overall_elo
)
from src.elo.adjust import (
    adjust_elo,
    deadjust_elo,
    calculate_adjustment_factors
)
from src.elo.recompute import (
    EloRecomputeEngine,
    RecomputeOptions,
    WeightStrategy,
    EloRecomputeResult,
    OverallEloResult,
    MeasurementImprovementResult,
    BatchRecomputeReport
)
from src.elo.events import (
    EloEventData,
    record_elo_event,
    get_user_elo_events,
    get_category_elo_events,
    get_recent_elo_events,
    get_user_elo_stats,
    get_elo_leaderboard_changes,
    cleanup_old_elo_events
)
from src.elo.errors import (
    EloError,
    RatingNotFoundError,
    UserNotFoundError,
    IncompleteProfileError,
    EventLedgerWriteError
)

__all__ = [
    'elo_from_percentile',
    'percentile_from_elo',
    'elo_to_tier',
    'calculate_overall_elo',
    'adjust_elo',
    'deadjust_elo',
    'calculate_adjustment_factors',
    'EloRecomputeEngine',
    'RecomputeOptions',
    'WeightStrategy',
    'EloRecomputeResult',
    'OverallEloResult',
    'MeasurementImprovementResult',
    'BatchRecomputeReport',
    'EloEventData',
    'record_elo_event',
    'get_user_elo_events',
    'get_category_elo_events',
    'get_recent_elo_events',
    'get_user_elo_stats',
    'get_elo_leaderboard_changes',
    'cleanup_old_elo_events',
    'EloError',
    'RatingNotFoundError',
    'UserNotFoundError',
    'IncompleteProfileError',
    'EventLedgerWriteError',
]
