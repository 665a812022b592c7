"""
ELO adjustment for fair cross-profile comparisons

Normalizes ratings by sex at birth, age, BMI-derived weight class and height.
Each factor is 1.0 in its optimal band; the total factor is the geometric
mean of the four so no single attribute dominates.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Dict, Optional

from src.base import SexAtBirth, UserProfile

SEX_FACTORS = {
    SexAtBirth.MALE: 1.0,     # Baseline
    SexAtBirth.FEMALE: 1.15,
    SexAtBirth.OTHER: 1.05,
}

# (upper bound exclusive, factor); peak performance 25-34
AGE_FACTORS = [
    (13, 0.70),
    (18, 0.85),
    (25, 0.95),
    (35, 1.00),
    (45, 0.95),
    (55, 0.90),
    (65, 0.85),
]
AGE_FACTOR_ELDER = 0.80

# BMI bands, optimum 18.5-25
BMI_FACTORS = [
    (18.5, 0.90),
    (25.0, 1.00),
    (30.0, 0.95),
    (35.0, 0.90),
    (40.0, 0.85),
]
BMI_FACTOR_MAX = 0.80

# Height bands in cm, optimum 160-190
HEIGHT_FACTORS = [
    (150, 0.90),
    (160, 0.95),
    (190, 1.00),
    (200, 0.98),
]
HEIGHT_FACTOR_MAX = 0.95

# Profile similarity weights and zero-similarity distances
SIMILARITY_WEIGHTS = {'sex': 0.3, 'age': 0.3, 'height': 0.2, 'weight': 0.2}
SIMILARITY_SPANS = {'age': 20.0, 'height': 50.0, 'weight': 30.0}
FAIR_COMPARISON_THRESHOLD = 0.8
BORDERLINE_COMPARISON_THRESHOLD = 0.6


@dataclass
class AdjustmentFactors:
    sex_factor: float
    age_factor: float
    weight_factor: float
    height_factor: float
    total_factor: float


@dataclass
class AdjustedElo:
    raw_elo: float
    adjusted_elo: float
    adjustment: float
    factors: AdjustmentFactors


def _banded(value: float, bands, above: float) -> float:
    for upper, factor in bands:
        if value < upper:
            return factor
    return above


def calculate_age(date_of_birth: date, today: Optional[date] = None) -> int:
    """Age in whole years"""
    today = today or date.today()
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def calculate_bmi(weight_kg: float, height_cm: float) -> float:
    return weight_kg / (height_cm / 100) ** 2


def calculate_sex_factor(sex_at_birth) -> float:
    try:
        return SEX_FACTORS[SexAtBirth(sex_at_birth)]
    except ValueError:
        return 1.0


def calculate_age_factor(age: int) -> float:
    return _banded(age, AGE_FACTORS, AGE_FACTOR_ELDER)


def calculate_weight_factor(bmi: float) -> float:
    return _banded(bmi, BMI_FACTORS, BMI_FACTOR_MAX)


def calculate_height_factor(height_cm: float) -> float:
    return _banded(height_cm, HEIGHT_FACTORS, HEIGHT_FACTOR_MAX)


def calculate_adjustment_factors(profile: UserProfile, today: Optional[date] = None) -> AdjustmentFactors:
    """
    Calculate adjustment factors for fair ELO comparison.

    Args:
        profile: User's physical profile
        today: Reference date for age (defaults to today)
    """
    sex_factor = calculate_sex_factor(profile.sex_at_birth)
    age_factor = calculate_age_factor(calculate_age(profile.date_of_birth, today))
    weight_factor = calculate_weight_factor(calculate_bmi(profile.weight_kg, profile.height_cm))
    height_factor = calculate_height_factor(profile.height_cm)

    total_factor = (sex_factor * age_factor * weight_factor * height_factor) ** 0.25

    return AdjustmentFactors(
        sex_factor=sex_factor,
        age_factor=age_factor,
        weight_factor=weight_factor,
        height_factor=height_factor,
        total_factor=total_factor,
    )


def adjust_elo(raw_elo: float, profile: UserProfile, today: Optional[date] = None) -> AdjustedElo:
    factors = calculate_adjustment_factors(profile, today)
    adjusted_elo = raw_elo * factors.total_factor
    return AdjustedElo(
        raw_elo=raw_elo,
        adjusted_elo=adjusted_elo,
        adjustment=adjusted_elo - raw_elo,
        factors=factors,
    )


def deadjust_elo(adjusted_elo: float, profile: UserProfile, today: Optional[date] = None) -> float:
    """Remove adjustments to get the raw ELO back"""
    factors = calculate_adjustment_factors(profile, today)
    return adjusted_elo / factors.total_factor


def calculate_profile_similarity(
    profile_a: UserProfile,
    profile_b: UserProfile,
    today: Optional[date] = None
) -> float:
    """Similarity between two profiles (0-1, higher = more similar)"""
    sex_similarity = 1.0 if SexAtBirth(profile_a.sex_at_birth) == SexAtBirth(profile_b.sex_at_birth) else 0.5

    age_diff = abs(calculate_age(profile_a.date_of_birth, today) - calculate_age(profile_b.date_of_birth, today))
    age_similarity = max(0.0, 1 - age_diff / SIMILARITY_SPANS['age'])

    height_diff = abs(profile_a.height_cm - profile_b.height_cm)
    height_similarity = max(0.0, 1 - height_diff / SIMILARITY_SPANS['height'])

    weight_diff = abs(profile_a.weight_kg - profile_b.weight_kg)
    weight_similarity = max(0.0, 1 - weight_diff / SIMILARITY_SPANS['weight'])

    return (
        sex_similarity * SIMILARITY_WEIGHTS['sex']
        + age_similarity * SIMILARITY_WEIGHTS['age']
        + height_similarity * SIMILARITY_WEIGHTS['height']
        + weight_similarity * SIMILARITY_WEIGHTS['weight']
    )


def compare_adjusted_elos(
    profile_a: UserProfile,
    elo_a: float,
    profile_b: UserProfile,
    elo_b: float,
    today: Optional[date] = None
) -> Dict:
    """Compare two users' ratings with adjustments applied to both"""
    similarity = calculate_profile_similarity(profile_a, profile_b, today)
    fair_comparison = similarity >= FAIR_COMPARISON_THRESHOLD

    if fair_comparison:
        recommendation = 'Direct comparison is fair'
    elif similarity >= BORDERLINE_COMPARISON_THRESHOLD:
        recommendation = 'Comparison requires adjustment consideration'
    else:
        recommendation = 'Comparison may not be meaningful due to significant profile differences'

    return {
        'user_a_adjusted': adjust_elo(elo_a, profile_a, today),
        'user_b_adjusted': adjust_elo(elo_b, profile_b, today),
        'similarity': similarity,
        'fair_comparison': fair_comparison,
        'recommendation': recommendation,
    }


def get_adjustment_explanation(factors: AdjustmentFactors) -> str:
    """Human-readable explanation of non-neutral factors"""
    explanations = []
    for label, factor in [
        ('Sex', factors.sex_factor),
        ('Age', factors.age_factor),
        ('Weight', factors.weight_factor),
        ('Height', factors.height_factor),
    ]:
        if factor != 1.0:
            explanations.append(f"{label} adjustment: {(factor - 1) * 100:+.1f}%")

    if not explanations:
        return 'No adjustments applied'

    return ', '.join(explanations)
