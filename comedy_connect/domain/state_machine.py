# comedy_connect/domain/state_machine.py

from enum import Enum
from typing import Dict, Set

from comedy_connect.domain.exceptions import InvalidStateTransitionError


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CONFIRMED_UNPAID = "CONFIRMED_UNPAID"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


class BookingStateMachine:
    """
    Central lifecycle controller for booking transitions.
    A booking leaves PENDING exactly once; every other state is terminal.
    """

    _ALLOWED_TRANSITIONS: Dict[BookingStatus, Set[BookingStatus]] = {
        BookingStatus.PENDING: {
            BookingStatus.CONFIRMED,
            BookingStatus.CONFIRMED_UNPAID,
            BookingStatus.CANCELLED,
            BookingStatus.FAILED,
        },
        BookingStatus.CONFIRMED: set(),
        BookingStatus.CONFIRMED_UNPAID: set(),
        BookingStatus.CANCELLED: set(),
        BookingStatus.FAILED: set(),
    }

    @classmethod
    def can_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> bool:
        """
        Returns True if transition is allowed.
        """
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)

        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> None:
        """
        Raises InvalidStateTransitionError if transition is illegal.
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransitionError(
                from_state=from_status.value,
                to_state=to_status.value,
            )

    @classmethod
    def is_terminal(cls, status: BookingStatus) -> bool:
        """
        Returns True if the state is terminal (no further transitions allowed).
        """
        cls._ensure_valid_status(status)
        return len(cls._ALLOWED_TRANSITIONS.get(status, set())) == 0

    @classmethod
    def active_statuses(cls) -> Set[BookingStatus]:
        return {
            status
            for status, targets in cls._ALLOWED_TRANSITIONS.items()
            if targets
        }

    @classmethod
    def get_allowed_transitions(
        cls, status: BookingStatus
    ) -> Set[BookingStatus]:
        cls._ensure_valid_status(status)
        return cls._ALLOWED_TRANSITIONS.get(status, set())

    @staticmethod
    def _ensure_valid_status(status: BookingStatus) -> None:
        if not isinstance(status, BookingStatus):
            raise TypeError(
                f"Expected BookingStatus, got {type(status)}"
            )
