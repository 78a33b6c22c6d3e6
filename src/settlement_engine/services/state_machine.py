"""Termination case state machine with transition validation."""

from __future__ import annotations

from enum import Enum

from settlement_engine.errors import ConflictError


class TerminationStatus(str, Enum):
    """Termination workflow status values."""

    IDLE = "idle"
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class InvalidTransitionError(ConflictError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = _value(from_status)
        self.to_status = _value(to_status)
        self.reason = reason
        msg = f"Invalid transition from '{self.from_status}' to '{self.to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


def _value(status: str) -> str:
    return status.value if isinstance(status, TerminationStatus) else str(status)


class TerminationStateMachine:
    """State machine for termination case status transitions.

    Allowed transitions:
    - idle → pending (processing requested)
    - pending → processing (worker claims the job)
    - processing → completed
    - processing → failed
    - completed → pending (regeneration)
    - failed → pending (retry / regeneration)
    """

    # Define valid transitions: {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: dict[TerminationStatus, list[TerminationStatus]] = {
        TerminationStatus.IDLE: [TerminationStatus.PENDING],
        TerminationStatus.PENDING: [TerminationStatus.PROCESSING],
        TerminationStatus.PROCESSING: [TerminationStatus.COMPLETED, TerminationStatus.FAILED],
        TerminationStatus.COMPLETED: [TerminationStatus.PENDING],
        TerminationStatus.FAILED: [TerminationStatus.PENDING],
    }

    # Statuses from which processing may be (re)requested
    ENQUEUE_ALLOWED = frozenset(
        {
            TerminationStatus.IDLE,
            TerminationStatus.COMPLETED,
            TerminationStatus.FAILED,
        }
    )

    # Statuses where a run is queued or executing
    IN_FLIGHT = frozenset({TerminationStatus.PENDING, TerminationStatus.PROCESSING})

    # Statuses where documents may be regenerated
    REGENERATION_ALLOWED = frozenset({TerminationStatus.COMPLETED, TerminationStatus.FAILED})

    @staticmethod
    def coerce(status: str) -> TerminationStatus:
        """Parse a persisted status value, raising ConflictError if unknown."""
        try:
            return TerminationStatus(_value(status))
        except ValueError as e:
            raise ConflictError(f"Unknown termination status '{status}'") from e

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(cls.coerce(from_status), [])
        return cls.coerce(to_status) in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            reason = None
            if (
                cls.coerce(from_status) in cls.IN_FLIGHT
                and cls.coerce(to_status) == TerminationStatus.PENDING
            ):
                reason = "processing is already in progress"
            raise InvalidTransitionError(from_status, to_status, reason)

    @classmethod
    def can_enqueue(cls, status: str) -> bool:
        """Check if processing may be requested in this status."""
        return cls.coerce(status) in cls.ENQUEUE_ALLOWED

    @classmethod
    def is_in_flight(cls, status: str) -> bool:
        return cls.coerce(status) in cls.IN_FLIGHT

    @classmethod
    def can_regenerate(cls, status: str) -> bool:
        """Check if documents may be regenerated in this status."""
        return cls.coerce(status) in cls.REGENERATION_ALLOWED

    @classmethod
    def is_regeneration(cls, from_status: str, to_status: str) -> bool:
        """Check if this transition re-runs a finished case (completed/failed → pending)."""
        return (
            cls.coerce(from_status) in cls.REGENERATION_ALLOWED
            and cls.coerce(to_status) == TerminationStatus.PENDING
        )

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[TerminationStatus]:
        """Get list of valid next statuses from current status."""
        return list(cls.VALID_TRANSITIONS.get(cls.coerce(current_status), []))
