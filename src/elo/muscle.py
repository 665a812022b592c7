"""
Muscle-group ELO breakdown

Weighted percentile per muscle group across the exercises that train it,
mapped onto the rating scale and a percentile-based rank tier.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from src.elo.math import ELO_CONSTANTS, elo_from_percentile
from src.stats.percentile import NO_DATA_PERCENTILE, calculate_percentile


@dataclass(frozen=True)
class MuscleMetric:
    slug: str
    weight: float
    description: str


@dataclass(frozen=True)
class MuscleGroup:
    id: str
    display_name: str
    metrics: List[MuscleMetric]


def _group(group_id: str, display_name: str, metrics) -> MuscleGroup:
    return MuscleGroup(
        id=group_id,
        display_name=display_name,
        metrics=[MuscleMetric(slug, weight, description) for slug, weight, description in metrics],
    )


MUSCLE_GROUPS: Dict[str, MuscleGroup] = {
    'chest': _group('chest', 'Chest', [
        ('bench_press', 0.4, 'Bench Press'),
        ('incline_bench_press', 0.3, 'Incline Bench Press'),
        ('decline_bench_press', 0.2, 'Decline Bench Press'),
        ('dumbbell_bench_press', 0.1, 'Dumbbell Bench Press'),
    ]),
    'back': _group('back', 'Back', [
        ('deadlift', 0.4, 'Deadlift'),
        ('pull_ups', 0.3, 'Pull-ups'),
        ('barbell_row', 0.2, 'Barbell Row'),
        ('lat_pulldown', 0.1, 'Lat Pulldown'),
    ]),
    'shoulders': _group('shoulders', 'Shoulders', [
        ('overhead_press', 0.5, 'Overhead Press'),
        ('lateral_raise', 0.3, 'Lateral Raise'),
        ('front_raise', 0.2, 'Front Raise'),
    ]),
    'arms': _group('arms', 'Arms', [
        ('bicep_curl', 0.4, 'Bicep Curl'),
        ('tricep_pushdown', 0.4, 'Tricep Pushdown'),
        ('hammer_curl', 0.2, 'Hammer Curl'),
    ]),
    'core': _group('core', 'Core', [
        ('plank', 0.3, 'Plank Hold'),
        ('russian_twist', 0.3, 'Russian Twist'),
        ('pallof_press', 0.2, 'Pallof Press'),
        ('turkish_getup', 0.2, 'Turkish Get-up'),
    ]),
    'legs': _group('legs', 'Legs', [
        ('squat', 0.4, 'Squat'),
        ('front_squat', 0.2, 'Front Squat'),
        ('leg_press', 0.2, 'Leg Press'),
        ('leg_extension', 0.1, 'Leg Extension'),
        ('leg_curl', 0.1, 'Leg Curl'),
    ]),
    'cardio': _group('cardio', 'Cardiovascular', [
        ('mile_run', 0.3, 'Mile Run'),
        ('5k_run', 0.3, '5K Run'),
        ('100m_dash', 0.2, '100m Dash'),
        ('400m_dash', 0.2, '400m Dash'),
    ]),
}

# (min percentile, tier), highest first
MUSCLE_TIER_THRESHOLDS = [
    (95, 'legendary'),
    (85, 'diamond'),
    (70, 'platinum'),
    (50, 'gold'),
    (25, 'silver'),
    (10, 'bronze'),
]
UNRANKED = 'unranked'


@dataclass
class MuscleElo:
    elo: float
    percentile: float
    tier: str
    top_contributor: str
    top_value: float


def muscle_percentile_to_tier(percentile: float) -> str:
    for threshold, tier in MUSCLE_TIER_THRESHOLDS:
        if percentile >= threshold:
            return tier
    return UNRANKED


def _unranked(top_contributor: str) -> MuscleElo:
    return MuscleElo(
        elo=float(ELO_CONSTANTS['BASE_RATING']),
        percentile=NO_DATA_PERCENTILE,
        tier=UNRANKED,
        top_contributor=top_contributor,
        top_value=0.0,
    )


def calculate_muscle_elo(
    muscle_group_id: str,
    user_entries: List[Dict],
    all_entries: Dict[str, List[Dict]]
) -> MuscleElo:
    """
    ELO for one muscle group.

    Args:
        muscle_group_id: Key of MUSCLE_GROUPS
        user_entries: [{'metric_slug': str, 'value': float}, ...] for the user
        all_entries: metric_slug -> [{'value': float, 'higher_is_better': bool}, ...]

    Returns:
        MuscleElo; unranked at the base rating when the group is unknown or has no data
    """
    muscle_group = MUSCLE_GROUPS.get(muscle_group_id)
    if muscle_group is None:
        return _unranked('Unknown')

    user_values = {}
    for entry in user_entries:
        user_values.setdefault(entry['metric_slug'], entry['value'])

    total_weighted_percentile = 0.0
    total_weight = 0.0
    top_contributor = ''
    top_value = 0.0

    for metric in muscle_group.metrics:
        if metric.slug not in user_values:
            continue

        metric_data = all_entries.get(metric.slug) or []
        if not metric_data:
            continue

        higher_is_better = metric_data[0].get('higher_is_better', True)
        result = calculate_percentile(
            [d['value'] for d in metric_data],
            user_values[metric.slug],
            higher_is_better
        )

        total_weighted_percentile += result.percentile * metric.weight
        total_weight += metric.weight

        if result.percentile > top_value:
            top_value = result.percentile
            top_contributor = metric.description

    if total_weight == 0:
        return _unranked('No data')

    final_percentile = total_weighted_percentile / total_weight

    return MuscleElo(
        elo=elo_from_percentile(final_percentile),
        percentile=final_percentile,
        tier=muscle_percentile_to_tier(final_percentile),
        top_contributor=top_contributor,
        top_value=top_value,
    )


def calculate_all_muscle_elos(
    user_entries: List[Dict],
    all_entries: Dict[str, List[Dict]]
) -> Dict[str, MuscleElo]:
    return {
        muscle_group_id: calculate_muscle_elo(muscle_group_id, user_entries, all_entries)
        for muscle_group_id in MUSCLE_GROUPS
    }


def get_muscle_group_by_metric(metric_slug: str) -> Optional[MuscleGroup]:
    for muscle_group in MUSCLE_GROUPS.values():
        if any(m.slug == metric_slug for m in muscle_group.metrics):
            return muscle_group
    return None
