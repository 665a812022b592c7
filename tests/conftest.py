"""
Pytest configuration and fixtures for FitRank ELO tests
"""
import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add parent directory to path for imports
sys.path.append(str(Path(__file__).parent.parent))

from src.base import (  # noqa: E402
    BaseEloStore,
    EntryStatus,
    MeasurementEntry,
    MeasurementType,
    Rating,
    SexAtBirth,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class InMemoryEloStore(BaseEloStore):
    """Dict-backed store for engine tests"""

    def __init__(self):
        self.ratings: Dict[tuple, Rating] = {}
        self.users: Dict[str, Dict[str, Any]] = {}
        self.measurement_types: Dict[str, MeasurementType] = {}
        self.entries: List[MeasurementEntry] = []
        self.events: List[Dict[str, Any]] = []
        self.fail_event_writes = False
        self.population_calls: List[Dict[str, Any]] = []

    # Fixture helpers
    def add_user(self, user_id, sex_at_birth='MALE', date_of_birth=date(1995, 1, 1),
                 height_cm=180.0, weight_kg=80.0, overall_elo=500.0):
        self.users[user_id] = {
            'id': user_id,
            'sex_at_birth': sex_at_birth,
            'date_of_birth': date_of_birth,
            'height_cm': height_cm,
            'weight_kg': weight_kg,
            'overall_elo': overall_elo,
        }

    def add_measurement_type(self, type_id, category_id='strength', higher_is_better=True, weight=1.0):
        self.measurement_types[type_id] = MeasurementType(
            id=type_id,
            category_id=category_id,
            slug=type_id,
            higher_is_better=higher_is_better,
            weight=weight,
        )

    def add_entry(self, user_id, type_id, value, created_at=NOW - timedelta(days=1),
                  status=EntryStatus.APPROVED):
        self.entries.append(MeasurementEntry(
            user_id=user_id,
            measurement_type_id=type_id,
            value=float(value),
            status=status,
            created_at=created_at,
        ))

    # Ratings
    def get_rating(self, user_id, category_id):
        return self.ratings.get((user_id, category_id))

    def create_rating(self, user_id, category_id, value):
        rating = Rating(user_id=user_id, category_id=category_id, value=float(value))
        self.ratings[(user_id, category_id)] = rating
        return rating

    def update_rating(self, user_id, category_id, value):
        self.ratings[(user_id, category_id)].value = float(value)

    def list_category_ratings(self, category_id):
        return [r for (_, c), r in self.ratings.items() if c == category_id]

    def list_user_ratings(self, user_id):
        return [r for (u, _), r in self.ratings.items() if u == user_id]

    def get_overall_rating(self, user_id):
        user = self.users.get(user_id)
        return None if user is None else user['overall_elo']

    def update_overall_rating(self, user_id, value):
        self.users[user_id]['overall_elo'] = float(value)

    # Profiles
    def get_profile(self, user_id):
        user = self.users.get(user_id)
        if user is None:
            return None
        return {k: user[k] for k in ['sex_at_birth', 'date_of_birth', 'height_cm', 'weight_kg']}

    # Measurement types and entries
    def list_measurement_types(self, category_id):
        return [m for m in self.measurement_types.values() if m.category_id == category_id]

    def fetch_approved_entries(self, user_id, measurement_type_ids, since):
        return [
            e for e in self.entries
            if e.user_id == user_id
            and e.measurement_type_id in measurement_type_ids
            and e.status == EntryStatus.APPROVED
            and e.created_at >= since
        ]

    def fetch_population_values(self, measurement_type_id, since, sex_at_birth=None,
                                min_weight_kg=None, max_weight_kg=None):
        self.population_calls.append({
            'measurement_type_id': measurement_type_id,
            'sex_at_birth': sex_at_birth,
            'min_weight_kg': min_weight_kg,
            'max_weight_kg': max_weight_kg,
        })
        values = []
        for e in self.entries:
            if e.measurement_type_id != measurement_type_id or e.status != EntryStatus.APPROVED:
                continue
            if e.created_at < since:
                continue
            user = self.users.get(e.user_id, {})
            if sex_at_birth is not None and user.get('sex_at_birth') != SexAtBirth(sex_at_birth).value:
                continue
            weight = user.get('weight_kg')
            if min_weight_kg is not None and (weight is None or weight < min_weight_kg):
                continue
            if max_weight_kg is not None and (weight is None or weight > max_weight_kg):
                continue
            values.append(e.value)
        return values

    # Events
    def insert_event(self, record):
        if self.fail_event_writes:
            raise ConnectionError("event table unavailable")
        self.events.append(dict(record))
        return dict(record)

    def select_events(self, user_id=None, category_id=None, event_type=None, since=None,
                      limit=None, offset=0):
        rows = [
            e for e in self.events
            if (user_id is None or e['user_id'] == user_id)
            and (category_id is None or e['category_id'] == category_id)
            and (event_type is None or e['event_type'] == event_type)
            and (since is None or e['created_at'] >= since)
        ]
        rows.sort(key=lambda e: e['created_at'], reverse=True)
        end = None if limit is None else offset + limit
        return rows[offset:end]

    def delete_events_before(self, cutoff):
        kept = [e for e in self.events if e['created_at'] >= cutoff]
        deleted = len(self.events) - len(kept)
        self.events = kept
        return deleted


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store():
    return InMemoryEloStore()


@pytest.fixture
def populated_store():
    """
    One class ("strength") with a bench press metric and 20 male lifters
    around 80kg benching 60..155kg, plus the user under test ("u1").
    """
    store = InMemoryEloStore()
    store.add_measurement_type('bench_press', 'strength')

    for i in range(20):
        user_id = f"pop{i}"
        store.add_user(user_id, weight_kg=76.0 + (i % 9))
        store.add_entry(user_id, 'bench_press', 60 + i * 5)

    store.add_user('u1', weight_kg=80.0)
    store.create_rating('u1', 'strength', 500.0)
    return store
