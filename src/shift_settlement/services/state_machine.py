"""Timesheet state machine with transition validation."""

from __future__ import annotations

from enum import Enum

from shift_settlement.exceptions import InvalidTransitionError


class TimesheetStatus(str, Enum):
    """Timesheet status values."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


class TimesheetStateMachine:
    """State machine for timesheet status transitions.

    Allowed transitions:
    - draft → submitted
    - submitted → approved
    - submitted → rejected
    - rejected → submitted (resubmit)
    - approved → paid
    """

    # Define valid transitions: {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: dict[str, list[str]] = {
        TimesheetStatus.DRAFT: [TimesheetStatus.SUBMITTED],
        TimesheetStatus.SUBMITTED: [TimesheetStatus.APPROVED, TimesheetStatus.REJECTED],
        TimesheetStatus.REJECTED: [TimesheetStatus.SUBMITTED],
        TimesheetStatus.APPROVED: [TimesheetStatus.PAID],
        TimesheetStatus.PAID: [],  # Terminal state
    }

    # Statuses where settled entries must not be edited in place
    ENTRIES_LOCKED = {
        TimesheetStatus.APPROVED,
        TimesheetStatus.PAID,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def are_entries_locked(cls, status: str) -> bool:
        """Check if settled entries can only be corrected by adjustment."""
        return status in cls.ENTRIES_LOCKED

    @classmethod
    def is_resubmit(cls, from_status: str, to_status: str) -> bool:
        return from_status == TimesheetStatus.REJECTED and to_status == TimesheetStatus.SUBMITTED
