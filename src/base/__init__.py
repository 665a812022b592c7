"""Base classes for FitRank ELO components"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class SexAtBirth(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    OTHER = "OTHER"


class EntryStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class EloEventType(str, Enum):
    RATING_CHANGE = "rating_change"
    TIER_CHANGE = "tier_change"
    RECOMPUTE = "recompute"
    MEASUREMENT_IMPROVEMENT = "metric_improvement"


@dataclass
class UserProfile:
    """Physical profile used for fairness adjustments and population filters"""
    sex_at_birth: SexAtBirth
    date_of_birth: date
    height_cm: float
    weight_kg: float


@dataclass
class Rating:
    """ELO rating for one user in one category"""
    user_id: str
    category_id: str
    value: float
    updated_at: Optional[datetime] = None


@dataclass
class MeasurementType:
    """Tracked exercise/metric contributing to a category's rating"""
    id: str
    category_id: str
    slug: str
    higher_is_better: bool = True
    weight: float = 1.0


@dataclass
class MeasurementEntry:
    """User-submitted measurement"""
    user_id: str
    measurement_type_id: str
    value: float
    status: EntryStatus
    created_at: datetime


@dataclass
class EloEvent:
    """Append-only record of a rating change"""
    id: str
    user_id: str
    event_type: EloEventType
    old_value: float
    new_value: float
    change: float
    created_at: datetime
    category_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class BaseEloStore(ABC):
    """Read/write contract of the data store behind the ELO engine.

    Implementations own persistence; the engine only calls these methods.
    Rating writes are the serialization point for concurrent recomputes of the
    same (user_id, category_id) pair.
    """

    # Ratings
    @abstractmethod
    def get_rating(self, user_id: str, category_id: str) -> Optional[Rating]:
        pass

    @abstractmethod
    def create_rating(self, user_id: str, category_id: str, value: float) -> Rating:
        pass

    @abstractmethod
    def update_rating(self, user_id: str, category_id: str, value: float) -> None:
        pass

    @abstractmethod
    def list_category_ratings(self, category_id: str) -> List[Rating]:
        """All ratings in a category (one per enrolled user)"""
        pass

    @abstractmethod
    def list_user_ratings(self, user_id: str) -> List[Rating]:
        pass

    @abstractmethod
    def get_overall_rating(self, user_id: str) -> Optional[float]:
        """Current overall ELO, None if the user does not exist"""
        pass

    @abstractmethod
    def update_overall_rating(self, user_id: str, value: float) -> None:
        pass

    # Profiles
    @abstractmethod
    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Raw profile fields: sex_at_birth, date_of_birth, height_cm, weight_kg"""
        pass

    # Measurement types and entries
    @abstractmethod
    def list_measurement_types(self, category_id: str) -> List[MeasurementType]:
        pass

    @abstractmethod
    def fetch_approved_entries(
        self,
        user_id: str,
        measurement_type_ids: List[str],
        since: datetime
    ) -> List[MeasurementEntry]:
        pass

    @abstractmethod
    def fetch_population_values(
        self,
        measurement_type_id: str,
        since: datetime,
        sex_at_birth: Optional[SexAtBirth] = None,
        min_weight_kg: Optional[float] = None,
        max_weight_kg: Optional[float] = None
    ) -> List[float]:
        """Values of APPROVED entries since `since`; demographic filters optional"""
        pass

    # Events
    @abstractmethod
    def insert_event(self, record: Dict[str, Any]) -> Dict[str, Any]:
        pass

    @abstractmethod
    def select_events(
        self,
        user_id: Optional[str] = None,
        category_id: Optional[str] = None,
        event_type: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        """Event rows ordered newest first"""
        pass

    @abstractmethod
    def delete_events_before(self, cutoff: datetime) -> int:
        pass


class BaseValidator(ABC):
    """Base class for data validators"""

    @abstractmethod
    def validate(self, data: Dict) -> tuple[bool, Optional[str]]:
        """Validate data, return (is_valid, error_message)"""
        pass
