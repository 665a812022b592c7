"""Data validation for FitRank ELO inputs"""
from typing import Any, Dict, List, Optional, Tuple
from datetime import date, datetime

import pandas as pd

from src.base import BaseValidator, EntryStatus, SexAtBirth, UserProfile

PROFILE_REQUIRED_FIELDS = ['sex_at_birth', 'date_of_birth', 'height_cm', 'weight_kg']


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return pd.to_datetime(value).date()


def missing_profile_fields(data: Optional[Dict]) -> List[str]:
    """Required profile fields that are absent or empty"""
    if not data:
        return list(PROFILE_REQUIRED_FIELDS)
    return [f for f in PROFILE_REQUIRED_FIELDS if _is_blank(data.get(f))]


def build_user_profile(data: Dict) -> UserProfile:
    """Convert a raw profile record into a UserProfile (call after validation)"""
    return UserProfile(
        sex_at_birth=SexAtBirth(str(data['sex_at_birth']).upper()),
        date_of_birth=_parse_date(data['date_of_birth']),
        height_cm=float(data['height_cm']),
        weight_kg=float(data['weight_kg']),
    )


class ProfileValidator(BaseValidator):
    """Validate profile data needed for adjustments and population filters"""

    def __init__(self, today: Optional[date] = None):
        self.today = today

    def validate(self, data: Dict) -> Tuple[bool, Optional[str]]:
        errors = []

        for field in missing_profile_fields(data):
            errors.append(f"Missing required field: {field}")

        data = data or {}

        sex = data.get('sex_at_birth')
        if not _is_blank(sex) and str(sex).upper() not in [s.value for s in SexAtBirth]:
            errors.append(f"Invalid sex_at_birth: {sex}")

        dob = data.get('date_of_birth')
        if not _is_blank(dob):
            try:
                if _parse_date(dob) > (self.today or date.today()):
                    errors.append(f"Date of birth in the future: {dob}")
            except (ValueError, TypeError):
                errors.append(f"Invalid date format: {dob}")

        for field in ['height_cm', 'weight_kg']:
            value = data.get(field)
            if _is_blank(value):
                continue
            try:
                if float(value) <= 0:
                    errors.append(f"Invalid {field}: {value}")
            except (ValueError, TypeError):
                errors.append(f"Invalid {field} format: {value}")

        return len(errors) == 0, '; '.join(errors) if errors else None


class MeasurementEntryValidator(BaseValidator):
    """Validate measurement entry data"""

    def validate(self, data: Dict) -> Tuple[bool, Optional[str]]:
        errors = []

        required = ['user_id', 'measurement_type_id', 'value', 'status', 'created_at']
        for field in required:
            if field not in data or _is_blank(data[field]):
                errors.append(f"Missing required field: {field}")

        if 'value' in data and not _is_blank(data['value']):
            try:
                float(data['value'])
            except (ValueError, TypeError):
                errors.append(f"Invalid value format: {data['value']}")

        if 'status' in data and not _is_blank(data['status']):
            if str(data['status']).upper() not in [s.value for s in EntryStatus]:
                errors.append(f"Invalid status: {data['status']}")

        if 'created_at' in data and not _is_blank(data['created_at']):
            try:
                pd.to_datetime(data['created_at'])
            except (ValueError, TypeError):
                errors.append(f"Invalid date format: {data['created_at']}")

        return len(errors) == 0, '; '.join(errors) if errors else None
