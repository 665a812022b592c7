"""Exceptions raised by the ELO engine"""


class EloError(Exception):
    """Base exception for ELO engine errors."""
    pass


class RatingNotFoundError(EloError):
    """No rating row for (user_id, category_id); the user must be enrolled first."""

    def __init__(self, user_id: str, category_id: str):
        self.user_id = user_id
        self.category_id = category_id
        super().__init__(f"No ELO found for user {user_id} in class {category_id}")


class UserNotFoundError(EloError):
    """User does not exist in the rating store."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class IncompleteProfileError(EloError):
    """Required demographic fields are missing."""

    def __init__(self, user_id: str, missing_fields=None):
        self.user_id = user_id
        self.missing_fields = list(missing_fields or [])
        detail = f": missing {', '.join(self.missing_fields)}" if self.missing_fields else ""
        super().__init__(f"Incomplete profile for user {user_id}{detail}")


class EventLedgerWriteError(EloError):
    """Event could not be written; never fails the recompute that produced it."""
    pass
