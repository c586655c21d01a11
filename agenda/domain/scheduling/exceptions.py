"""Scheduling domain errors

Every error carries a message that can be shown to the end user as-is.
"""

from typing import Optional


class SchedulingError(Exception):
    """Base class for scheduling failures"""

    error_code = "scheduling_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SchedulingError):
    """Malformed input; the caller must correct it before retrying"""

    error_code = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ConflictError(SchedulingError):
    """The requested slot is taken by another booking or by a professional break"""

    error_code = "conflict"

    def __init__(self, message: str, conflict=None):
        super().__init__(message)
        self.conflict = conflict

    @classmethod
    def from_conflict(cls, conflict) -> "ConflictError":
        return cls(conflict.message, conflict=conflict)


class NotFoundError(SchedulingError):
    error_code = "not_found"

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class InvalidTransitionError(SchedulingError):
    """Status change not allowed from the current state (usually stale client state)"""

    error_code = "invalid_transition"

    def __init__(self, current_status: str, target_status: str):
        super().__init__(
            f"Cannot change appointment status from '{current_status}' to '{target_status}'"
        )
        self.current_status = current_status
        self.target_status = target_status
