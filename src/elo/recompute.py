"""
ELO recompute engine

Regenerates category ratings from the latest APPROVED measurement entries
inside a rolling window, comparing each entry with a demographically
filtered population (see src.elo.distributions), then derives the overall
rating as a weighted mean of category ratings.

The engine is stateless between calls. Concurrent recomputes of the same
(user_id, category_id) must be serialized by the caller (transactional
update or advisory lock); independent users may be recomputed in parallel.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from src.base import (
    BaseEloStore,
    EloEventType,
    EntryStatus,
    MeasurementEntry,
    MeasurementType,
    Rating,
    UserProfile,
)
from src.elo.adjust import adjust_elo
from src.elo.distributions import (
    PopulationDistribution,
    build_measurement_distribution,
    build_population_distributions,
    population_size,
    rolling_cutoff,
)
from src.elo.errors import IncompleteProfileError, RatingNotFoundError, UserNotFoundError
from src.elo.events import EloEventData, record_elo_event
from src.elo.math import (
    ELO_CONSTANTS,
    calculate_elo_change,
    calculate_overall_elo,
    clamp_elo,
    elo_from_percentile,
    elo_to_tier,
)
from src.stats.percentile import calculate_percentile
from src.utils.validators import ProfileValidator, build_user_profile, missing_profile_fields

logger = logging.getLogger(__name__)


class WeightStrategy(str, Enum):
    EQUAL = "equal"
    MEASUREMENT_WEIGHT = "metric_weight"


@dataclass
class RecomputeOptions:
    """
    Recompute configuration.

    Defaults are the production values; RecomputeOptions.from_settings()
    reads overrides from config.settings.ELO_CONFIG.
    """
    rolling_days: int = 180
    weight_strategy: WeightStrategy = WeightStrategy.EQUAL
    enable_adjustments: bool = True
    min_population_size: int = 10

    # Bodyweight band: ±10%, doubled per attempt, 3 attempts before global fallback
    initial_filter_width: float = 0.10
    max_filter_attempts: int = 3

    # Changes at or below this are not recorded in the event ledger
    event_change_threshold: float = 0.01

    def __post_init__(self):
        self.weight_strategy = WeightStrategy(self.weight_strategy)
        if self.rolling_days <= 0:
            raise ValueError(f"rolling_days must be positive, got {self.rolling_days}")
        if self.max_filter_attempts < 1:
            raise ValueError(f"max_filter_attempts must be >= 1, got {self.max_filter_attempts}")

    @classmethod
    def from_settings(cls, **overrides) -> "RecomputeOptions":
        from config.settings import ELO_CONFIG

        values = dict(
            rolling_days=ELO_CONFIG['rolling_days'],
            weight_strategy=ELO_CONFIG['weight_strategy'],
            enable_adjustments=ELO_CONFIG['enable_adjustments'],
            min_population_size=ELO_CONFIG['min_population_size'],
            initial_filter_width=ELO_CONFIG['initial_filter_width'],
            max_filter_attempts=ELO_CONFIG['max_filter_attempts'],
            event_change_threshold=ELO_CONFIG['event_change_threshold'],
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@dataclass
class RecomputeFactors:
    metric_count: int = 0
    population_size: int = 0
    adjustment_applied: bool = False
    global_fallback_metrics: List[str] = field(default_factory=list)


@dataclass
class EloRecomputeResult:
    user_id: str
    category_id: str
    old_elo: float
    new_elo: float
    change: float
    old_tier: str
    new_tier: str
    tier_changed: bool
    factors: RecomputeFactors = field(default_factory=RecomputeFactors)
    # Non-fatal problems (e.g. event ledger write failures)
    warnings: List[str] = field(default_factory=list)


@dataclass
class OverallEloResult:
    user_id: str
    old_elo: float
    new_elo: float
    change: float
    warnings: List[str] = field(default_factory=list)


@dataclass
class MeasurementImprovementResult:
    user_id: str
    category_id: str
    measurement_type_id: str
    projected_elo: float
    change: float
    warnings: List[str] = field(default_factory=list)


@dataclass
class BatchFailure:
    user_id: str
    category_id: Optional[str]
    error: Exception


@dataclass
class BatchRecomputeReport:
    results: List[EloRecomputeResult] = field(default_factory=list)
    failures: List[BatchFailure] = field(default_factory=list)


@dataclass
class TriggerReport:
    """Outcome of a workflow-triggered recompute; errors are reported, never raised"""
    results: List[EloRecomputeResult] = field(default_factory=list)
    overall: Optional[OverallEloResult] = None
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _resolve_now(now: Optional[datetime]) -> datetime:
    """Current time, with naive datetimes treated as UTC"""
    if now is None:
        return _utcnow()
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def latest_entries_by_measurement(
    entries: Iterable[MeasurementEntry],
    cutoff: datetime
) -> Dict[str, MeasurementEntry]:
    """Latest APPROVED entry per measurement type at or after cutoff"""
    latest: Dict[str, MeasurementEntry] = {}
    for entry in entries:
        if EntryStatus(entry.status) != EntryStatus.APPROVED or entry.created_at < cutoff:
            continue
        current = latest.get(entry.measurement_type_id)
        if current is None or entry.created_at > current.created_at:
            latest[entry.measurement_type_id] = entry
    return latest


def measurement_weight(measurement_type: MeasurementType, strategy: WeightStrategy) -> float:
    if strategy == WeightStrategy.MEASUREMENT_WEIGHT:
        return float(measurement_type.weight)
    return 1.0


def calculate_category_elo_from_distributions(
    user_entries: Dict[str, MeasurementEntry],
    distributions: Dict[str, PopulationDistribution],
    measurement_types: Dict[str, MeasurementType],
    weight_strategy: WeightStrategy,
    profile: UserProfile,
    enable_adjustments: bool,
    today=None
) -> Tuple[float, bool, List[str]]:
    """
    Combine per-measurement ELOs into one category ELO.

    Returns:
        (elo, adjustment_applied, contributing measurement_type_ids)
    """
    total_weight = 0.0
    weighted_sum = 0.0
    contributing = []

    for measurement_type_id, entry in user_entries.items():
        distribution = distributions.get(measurement_type_id)
        measurement_type = measurement_types.get(measurement_type_id)
        if distribution is None or distribution.size == 0 or measurement_type is None:
            continue

        percentile = calculate_percentile(
            distribution.values,
            entry.value,
            measurement_type.higher_is_better
        ).percentile
        elo = elo_from_percentile(percentile)

        weight = measurement_weight(measurement_type, weight_strategy)
        weighted_sum += elo * weight
        total_weight += weight
        contributing.append(measurement_type_id)

    if total_weight == 0:
        return float(ELO_CONSTANTS['BASE_RATING']), False, contributing

    raw_elo = weighted_sum / total_weight

    if enable_adjustments:
        adjusted = adjust_elo(raw_elo, profile, today)
        return clamp_elo(adjusted.adjusted_elo), True, contributing

    return clamp_elo(raw_elo), False, contributing


class EloRecomputeEngine:
    """Entry points for recomputing category and overall ELO ratings"""

    def __init__(
        self,
        store: BaseEloStore,
        options: Optional[RecomputeOptions] = None,
        base_enrollment_elo: float = 1000.0,
        primary_enrollment_elo: float = 1100.0
    ):
        self.store = store
        self.options = options or RecomputeOptions()
        self.base_enrollment_elo = base_enrollment_elo
        self.primary_enrollment_elo = primary_enrollment_elo

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    def _load_rating(self, user_id: str, category_id: str) -> Rating:
        rating = self.store.get_rating(user_id, category_id)
        if rating is None:
            raise RatingNotFoundError(user_id, category_id)
        return rating

    def _load_profile(self, user_id: str, today=None) -> UserProfile:
        data = self.store.get_profile(user_id)
        missing = missing_profile_fields(data)
        if missing:
            raise IncompleteProfileError(user_id, missing)
        is_valid, error = ProfileValidator(today).validate(data)
        if not is_valid:
            raise IncompleteProfileError(user_id, [error])
        try:
            return build_user_profile(data)
        except (ValueError, TypeError) as e:
            raise IncompleteProfileError(user_id, [str(e)]) from e

    async def _write_event(
        self,
        event_data: EloEventData,
        now: datetime,
        warnings: List[str]
    ) -> None:
        """Record an event; failures are logged and returned as warnings"""
        try:
            await record_elo_event(self.store, event_data, now=now)
        except Exception as e:
            message = f"Failed to create ELO event for user {event_data.user_id}: {e}"
            logger.warning(f"⚠️ {message}")
            warnings.append(message)

    # ------------------------------------------------------------------
    # Single user / category
    # ------------------------------------------------------------------
    async def recompute_user_category_elo(
        self,
        user_id: str,
        category_id: str,
        options: Optional[RecomputeOptions] = None,
        now: Optional[datetime] = None
    ) -> EloRecomputeResult:
        """
        Recompute one user's ELO in one category.

        Raises:
            RatingNotFoundError: user is not enrolled in the category
            IncompleteProfileError: profile lacks required fields
        """
        opts = options or self.options
        now = _resolve_now(now)
        cutoff = rolling_cutoff(opts.rolling_days, now)

        current = self._load_rating(user_id, category_id)
        profile = self._load_profile(user_id, now.date())
        old_elo = float(current.value)
        old_tier = elo_to_tier(old_elo)

        measurement_types = self.store.list_measurement_types(category_id)
        types_by_id = {m.id: m for m in measurement_types}

        user_entries = {}
        if types_by_id:
            user_entries = latest_entries_by_measurement(
                self.store.fetch_approved_entries(user_id, list(types_by_id), cutoff),
                cutoff
            )

        if not user_entries:
            # No eligible data: keep current ELO
            logger.debug(f"No approved entries for user {user_id} in class {category_id} - keeping {old_elo:.1f}")
            return EloRecomputeResult(
                user_id=user_id,
                category_id=category_id,
                old_elo=old_elo,
                new_elo=old_elo,
                change=0.0,
                old_tier=old_tier,
                new_tier=old_tier,
                tier_changed=False,
            )

        distributions = await build_population_distributions(
            self.store,
            category_id,
            profile,
            rolling_days=opts.rolling_days,
            min_population_size=opts.min_population_size,
            now=now,
            initial_filter_width=opts.initial_filter_width,
            max_attempts=opts.max_filter_attempts,
            measurement_types=[types_by_id[m] for m in user_entries],
        )

        new_elo, adjustment_applied, contributing = calculate_category_elo_from_distributions(
            user_entries,
            distributions,
            types_by_id,
            opts.weight_strategy,
            profile,
            opts.enable_adjustments,
            today=now.date(),
        )

        change = new_elo - old_elo
        new_tier = elo_to_tier(new_elo)
        tier_changed = old_tier != new_tier

        factors = RecomputeFactors(
            metric_count=len(user_entries),
            population_size=population_size(distributions, contributing),
            adjustment_applied=adjustment_applied,
            global_fallback_metrics=sorted(
                m for m in contributing if distributions[m].used_global_fallback
            ),
        )

        if new_elo != old_elo:
            self.store.update_rating(user_id, category_id, new_elo)

        warnings: List[str] = []
        if abs(change) > opts.event_change_threshold:
            await self._write_event(
                EloEventData(
                    user_id=user_id,
                    category_id=category_id,
                    event_type=EloEventType.TIER_CHANGE if tier_changed else EloEventType.RATING_CHANGE,
                    old_value=old_elo,
                    new_value=new_elo,
                    change=change,
                    metadata={
                        'reason': 'recompute',
                        'metric_count': factors.metric_count,
                        'population_size': factors.population_size,
                        'adjustment_applied': factors.adjustment_applied,
                        'global_fallback_metrics': factors.global_fallback_metrics,
                        'old_tier': old_tier,
                        'new_tier': new_tier,
                    },
                ),
                now,
                warnings,
            )

        if tier_changed:
            logger.info(f"📊 User {user_id} class {category_id}: {old_tier} → {new_tier} ({old_elo:.1f} → {new_elo:.1f})")

        return EloRecomputeResult(
            user_id=user_id,
            category_id=category_id,
            old_elo=old_elo,
            new_elo=new_elo,
            change=change,
            old_tier=old_tier,
            new_tier=new_tier,
            tier_changed=tier_changed,
            factors=factors,
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------
    async def _isolated(
        self,
        user_id: str,
        category_id: str,
        options: Optional[RecomputeOptions],
        now: datetime
    ):
        try:
            return await self.recompute_user_category_elo(user_id, category_id, options, now)
        except Exception as e:
            logger.error(f"❌ Failed to recompute ELO for user {user_id} in class {category_id}: {e}")
            return BatchFailure(user_id=user_id, category_id=category_id, error=e)

    @staticmethod
    def _collect(outcomes) -> BatchRecomputeReport:
        report = BatchRecomputeReport()
        for outcome in outcomes:
            if isinstance(outcome, BatchFailure):
                report.failures.append(outcome)
            else:
                report.results.append(outcome)
        return report

    async def recompute_category_elos_report(
        self,
        category_id: str,
        options: Optional[RecomputeOptions] = None,
        now: Optional[datetime] = None
    ) -> BatchRecomputeReport:
        now = _resolve_now(now)
        ratings = self.store.list_category_ratings(category_id)
        logger.info(f"🔁 Recomputing ELO for {len(ratings):,} users in class {category_id}...")

        outcomes = await asyncio.gather(*[
            self._isolated(rating.user_id, category_id, options, now)
            for rating in ratings
        ])
        report = self._collect(outcomes)

        if report.failures:
            logger.warning(f"⚠️ {len(report.failures)} users failed to recompute in class {category_id}")
        logger.info(f"✅ Class {category_id}: {len(report.results):,} users recomputed")
        return report

    async def recompute_category_elos(
        self,
        category_id: str,
        options: Optional[RecomputeOptions] = None,
        now: Optional[datetime] = None
    ) -> List[EloRecomputeResult]:
        """Recompute every user enrolled in a category; failed users are logged and skipped"""
        report = await self.recompute_category_elos_report(category_id, options, now)
        return report.results

    async def _recompute_user_all_categories(
        self,
        user_id: str,
        options: Optional[RecomputeOptions],
        now: datetime
    ) -> list:
        try:
            ratings = self.store.list_user_ratings(user_id)
        except Exception as e:
            logger.error(f"❌ Failed to load classes for user {user_id}: {e}")
            return [BatchFailure(user_id=user_id, category_id=None, error=e)]

        outcomes = []
        for rating in ratings:
            outcomes.append(await self._isolated(user_id, rating.category_id, options, now))
        return outcomes

    async def batch_recompute_elos_report(
        self,
        user_ids: List[str],
        category_id: Optional[str] = None,
        options: Optional[RecomputeOptions] = None,
        now: Optional[datetime] = None
    ) -> BatchRecomputeReport:
        now = _resolve_now(now)
        logger.info(f"🔁 Batch recompute for {len(user_ids):,} users (class={category_id or 'all'})")

        if category_id:
            outcomes = await asyncio.gather(*[
                self._isolated(user_id, category_id, options, now) for user_id in user_ids
            ])
        else:
            per_user = await asyncio.gather(*[
                self._recompute_user_all_categories(user_id, options, now) for user_id in user_ids
            ])
            outcomes = [outcome for user_outcomes in per_user for outcome in user_outcomes]

        report = self._collect(outcomes)
        if report.failures:
            logger.warning(f"⚠️ {len(report.failures)} recomputes failed in batch")
        return report

    async def batch_recompute_elos(
        self,
        user_ids: List[str],
        category_id: Optional[str] = None,
        options: Optional[RecomputeOptions] = None,
        now: Optional[datetime] = None
    ) -> List[EloRecomputeResult]:
        """
        Recompute a list of users, either in one category or in every category they are enrolled in.
        """
        report = await self.batch_recompute_elos_report(user_ids, category_id, options, now)
        return report.results

    # ------------------------------------------------------------------
    # Overall
    # ------------------------------------------------------------------
    async def recompute_overall_elo(
        self,
        user_id: str,
        category_weights: Optional[Dict[str, float]] = None,
        options: Optional[RecomputeOptions] = None,
        now: Optional[datetime] = None
    ) -> OverallEloResult:
        """
        Recompute the overall ELO as the weighted mean of the user's category ELOs.

        Raises:
            UserNotFoundError: unknown user
        """
        opts = options or self.options
        now = _resolve_now(now)
        old_elo = self.store.get_overall_rating(user_id)
        if old_elo is None:
            raise UserNotFoundError(user_id)
        old_elo = float(old_elo)

        ratings = self.store.list_user_ratings(user_id)
        if not ratings:
            return OverallEloResult(user_id=user_id, old_elo=old_elo, new_elo=old_elo, change=0.0)

        new_elo = calculate_overall_elo({r.category_id: float(r.value) for r in ratings}, category_weights)
        change = new_elo - old_elo

        if new_elo != old_elo:
            self.store.update_overall_rating(user_id, new_elo)

        warnings: List[str] = []
        if abs(change) > opts.event_change_threshold:
            await self._write_event(
                EloEventData(
                    user_id=user_id,
                    event_type=EloEventType.RECOMPUTE,
                    old_value=old_elo,
                    new_value=new_elo,
                    change=change,
                    metadata={
                        'reason': 'overall_recompute',
                        'class_count': len(ratings),
                        'weighted': bool(category_weights),
                    },
                ),
                now,
                warnings,
            )

        return OverallEloResult(user_id=user_id, old_elo=old_elo, new_elo=new_elo, change=change, warnings=warnings)

    # ------------------------------------------------------------------
    # Workflow triggers
    # ------------------------------------------------------------------
    async def on_entry_approved(
        self,
        user_id: str,
        category_id: str,
        options: Optional[RecomputeOptions] = None,
        now: Optional[datetime] = None
    ) -> TriggerReport:
        """Recompute after an entry is approved; never raises"""
        now = _resolve_now(now)
        report = TriggerReport()
        try:
            report.results.append(await self.recompute_user_category_elo(user_id, category_id, options, now))
            report.overall = await self.recompute_overall_elo(user_id, options=options, now=now)
            logger.info(f"ELO recomputed for user {user_id} after approval")
        except Exception as e:
            logger.error(f"❌ Failed to recompute ELO after approval for user {user_id}: {e}")
            report.errors.append(str(e))
        return report

    async def on_onboarding_completed(
        self,
        user_id: str,
        options: Optional[RecomputeOptions] = None,
        now: Optional[datetime] = None
    ) -> TriggerReport:
        """Recompute every enrolled class and the overall ELO; never raises"""
        now = _resolve_now(now)
        report = TriggerReport()

        for outcome in await self._recompute_user_all_categories(user_id, options, now):
            if isinstance(outcome, BatchFailure):
                report.errors.append(str(outcome.error))
            else:
                report.results.append(outcome)

        try:
            report.overall = await self.recompute_overall_elo(user_id, options=options, now=now)
        except Exception as e:
            logger.error(f"❌ Failed to recompute overall ELO after onboarding for user {user_id}: {e}")
            report.errors.append(str(e))

        return report

    async def enroll_user(
        self,
        user_id: str,
        category_ids: List[str],
        primary_category_id: Optional[str] = None
    ) -> List[Rating]:
        """Create missing ratings at the enrollment baseline; existing ratings are left alone"""
        ratings = []
        for category_id in category_ids:
            existing = self.store.get_rating(user_id, category_id)
            if existing is not None:
                ratings.append(existing)
                continue
            baseline = self.primary_enrollment_elo if category_id == primary_category_id else self.base_enrollment_elo
            ratings.append(self.store.create_rating(user_id, category_id, baseline))
        return ratings

    # ------------------------------------------------------------------
    # Measurement improvement
    # ------------------------------------------------------------------
    async def record_measurement_improvement(
        self,
        user_id: str,
        category_id: str,
        measurement_type_id: str,
        old_value: float,
        new_value: float,
        options: Optional[RecomputeOptions] = None,
        now: Optional[datetime] = None
    ) -> MeasurementImprovementResult:
        """
        ELO change implied by one measurement improving, against the user's population.

        Records a metric_improvement event; the stored rating is untouched
        (the next recompute is authoritative).

        Ledger write failures are returned in warnings.
        """
        opts = options or self.options
        now = _resolve_now(now)

        current = self._load_rating(user_id, category_id)
        profile = self._load_profile(user_id, now.date())

        measurement_type = next(
            (m for m in self.store.list_measurement_types(category_id) if m.id == measurement_type_id),
            None
        )
        if measurement_type is None:
            raise ValueError(f"Metric {measurement_type_id} does not belong to class {category_id}")

        distribution = build_measurement_distribution(
            self.store,
            measurement_type,
            profile,
            rolling_cutoff(opts.rolling_days, now),
            opts.min_population_size,
            initial_filter_width=opts.initial_filter_width,
            max_attempts=opts.max_filter_attempts,
        )

        projected_elo, change = calculate_elo_change(
            old_value,
            new_value,
            distribution.values,
            measurement_type.higher_is_better,
            float(current.value),
        )

        warnings: List[str] = []
        if abs(change) > opts.event_change_threshold:
            await self._write_event(
                EloEventData(
                    user_id=user_id,
                    category_id=category_id,
                    event_type=EloEventType.MEASUREMENT_IMPROVEMENT,
                    old_value=float(current.value),
                    new_value=projected_elo,
                    change=change,
                    metadata={
                        'measurement_type_id': measurement_type_id,
                        'old_measurement': old_value,
                        'new_measurement': new_value,
                        'population_size': distribution.size,
                    },
                ),
                now,
                warnings,
            )

        return MeasurementImprovementResult(
            user_id=user_id,
            category_id=category_id,
            measurement_type_id=measurement_type_id,
            projected_elo=projected_elo,
            change=change,
            warnings=warnings,
        )
