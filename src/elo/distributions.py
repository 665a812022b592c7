"""
Population distributions for ELO recompute

For each measurement type in a category, builds the comparison sample from
APPROVED entries inside the rolling window, filtered to the user's sex at
birth and a bodyweight band around the user's weight. The band starts at
±10% and doubles on each attempt; after the last attempt the unfiltered
global sample (same window) is used so recompute never stalls on sparse
measurement types.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from src.base import BaseEloStore, MeasurementType, UserProfile

logger = logging.getLogger(__name__)

DEFAULT_INITIAL_FILTER_WIDTH = 0.10
DEFAULT_MAX_FILTER_ATTEMPTS = 3


@dataclass
class PopulationDistribution:
    """Comparison sample for one measurement type"""
    measurement_type_id: str
    values: List[float] = field(default_factory=list)
    filter_width: Optional[float] = None   # None when the global sample was used
    attempts: int = 0
    used_global_fallback: bool = False

    @property
    def size(self) -> int:
        return len(self.values)


def rolling_cutoff(rolling_days: int, now: Optional[datetime] = None) -> datetime:
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now - timedelta(days=rolling_days)


def build_measurement_distribution(
    store: BaseEloStore,
    measurement_type: MeasurementType,
    profile: UserProfile,
    cutoff: datetime,
    min_population_size: int,
    initial_filter_width: float = DEFAULT_INITIAL_FILTER_WIDTH,
    max_attempts: int = DEFAULT_MAX_FILTER_ATTEMPTS
) -> PopulationDistribution:
    """
    Build the sample for a single measurement type.

    Tries at most max_attempts filtered queries, then one unfiltered query.
    """
    filter_width = initial_filter_width

    for attempt in range(1, max_attempts + 1):
        weight_range = profile.weight_kg * filter_width
        values = store.fetch_population_values(
            measurement_type.id,
            cutoff,
            sex_at_birth=profile.sex_at_birth,
            min_weight_kg=profile.weight_kg - weight_range,
            max_weight_kg=profile.weight_kg + weight_range,
        )

        if len(values) >= min_population_size:
            return PopulationDistribution(
                measurement_type_id=measurement_type.id,
                values=list(values),
                filter_width=filter_width,
                attempts=attempt,
            )

        # Widen filter if population is too small
        filter_width *= 2

    values = store.fetch_population_values(measurement_type.id, cutoff)
    logger.debug(
        f"Population for {measurement_type.slug or measurement_type.id} below {min_population_size} "
        f"after {max_attempts} attempts - using global sample ({len(values)} values)"
    )
    return PopulationDistribution(
        measurement_type_id=measurement_type.id,
        values=list(values),
        filter_width=None,
        attempts=max_attempts,
        used_global_fallback=True,
    )


async def build_population_distributions(
    store: BaseEloStore,
    category_id: str,
    profile: UserProfile,
    rolling_days: int = 180,
    min_population_size: int = 10,
    now: Optional[datetime] = None,
    initial_filter_width: float = DEFAULT_INITIAL_FILTER_WIDTH,
    max_attempts: int = DEFAULT_MAX_FILTER_ATTEMPTS,
    measurement_types: Optional[List[MeasurementType]] = None
) -> Dict[str, PopulationDistribution]:
    """
    Build one population distribution per measurement type in a category.

    Args:
        store: Data store
        category_id: Category to build distributions for
        profile: Profile of the user being rated (filter anchor)
        rolling_days: Rolling window in days
        min_population_size: Minimum filtered sample size before widening
        now: Reference time (defaults to current UTC time)
        measurement_types: Pre-fetched measurement types for the category

    Returns:
        Dictionary mapping measurement_type_id -> PopulationDistribution
    """
    cutoff = rolling_cutoff(rolling_days, now)

    if measurement_types is None:
        measurement_types = store.list_measurement_types(category_id)

    distributions: Dict[str, PopulationDistribution] = {}
    for measurement_type in measurement_types:
        distributions[measurement_type.id] = build_measurement_distribution(
            store,
            measurement_type,
            profile,
            cutoff,
            min_population_size,
            initial_filter_width=initial_filter_width,
            max_attempts=max_attempts,
        )

    fallback_count = sum(1 for d in distributions.values() if d.used_global_fallback)
    if fallback_count:
        logger.info(
            f"📊 Class {category_id}: {fallback_count}/{len(distributions)} measurement types "
            f"fell back to the global population"
        )

    return distributions


def population_size(distributions: Dict[str, PopulationDistribution], measurement_type_ids=None) -> int:
    """Smallest non-empty sample among the given (or all) measurement types, 0 if none"""
    if measurement_type_ids is not None:
        selected = [distributions[m] for m in measurement_type_ids if m in distributions]
    else:
        selected = list(distributions.values())

    sizes = [d.size for d in selected if d.size > 0]
    return min(sizes) if sizes else 0
