"""Utility functions and helpers"""

from .validators import (
    MeasurementEntryValidator,
    ProfileValidator,
    build_user_profile,
    missing_profile_fields,
)

__all__ = ['MeasurementEntryValidator', 'ProfileValidator', 'build_user_profile', 'missing_profile_fields']
