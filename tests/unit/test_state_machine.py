# tests/unit/test_state_machine.py

import pytest

from comedy_connect.domain.state_machine import BookingStateMachine, BookingStatus
from comedy_connect.domain.exceptions import InvalidStateTransitionError


# ---------------------
# VALID TRANSITIONS
# ---------------------

def test_pending_can_reach_every_outcome():
    for target in (
        BookingStatus.CONFIRMED,
        BookingStatus.CONFIRMED_UNPAID,
        BookingStatus.CANCELLED,
        BookingStatus.FAILED,
    ):
        assert BookingStateMachine.can_transition(BookingStatus.PENDING, target)


def test_only_pending_is_active():
    assert BookingStateMachine.active_statuses() == {BookingStatus.PENDING}


# ---------------------
# INVALID TRANSITIONS
# ---------------------

def test_confirmed_is_terminal():
    assert BookingStateMachine.is_terminal(BookingStatus.CONFIRMED)

    with pytest.raises(InvalidStateTransitionError):
        BookingStateMachine.validate_transition(
            BookingStatus.CONFIRMED,
            BookingStatus.CANCELLED,
        )


def test_terminal_state_failed():
    assert BookingStateMachine.is_terminal(BookingStatus.FAILED)

    with pytest.raises(InvalidStateTransitionError):
        BookingStateMachine.validate_transition(
            BookingStatus.FAILED,
            BookingStatus.CONFIRMED,
        )


def test_cancelled_cannot_be_revived():
    assert BookingStateMachine.get_allowed_transitions(BookingStatus.CANCELLED) == set()

    with pytest.raises(InvalidStateTransitionError):
        BookingStateMachine.validate_transition(
            BookingStatus.CANCELLED,
            BookingStatus.PENDING,
        )


def test_invalid_type_guard():
    with pytest.raises(TypeError):
        BookingStateMachine.validate_transition(
            "PENDING",  # invalid type
            BookingStatus.CONFIRMED,
        )
