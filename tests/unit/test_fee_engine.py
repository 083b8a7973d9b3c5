# tests/unit/test_fee_engine.py

from decimal import Decimal

import pytest

from comedy_connect.domain.exceptions import ConfigurationError, ValidationError
from comedy_connect.domain.fee_engine import (
    FeeSchedule,
    FeeSlab,
    compute_fee,
    validate_fee_percent,
    validate_slabs,
)


def _slabs(*rows):
    return tuple(
        FeeSlab(min_price=low, max_price=high, fee_percent=Decimal(rate))
        for low, high, rate in rows
    )


TIERED = _slabs((0, 199, "0.05"), (200, 400, "0.07"), (401, None, "0.08"))


def test_slab_rate_applies_to_order_total():
    schedule = FeeSchedule(slabs=TIERED)

    fees = compute_fee(ticket_price=250, quantity=2, schedule=schedule)

    assert fees.total_amount == 500
    assert fees.platform_fee == 35
    assert fees.platform_fee_percent == Decimal("0.07")


def test_slab_boundaries_are_inclusive():
    schedule = FeeSchedule(slabs=TIERED)

    assert compute_fee(199, 1, schedule).platform_fee_percent == Decimal("0.05")
    assert compute_fee(200, 1, schedule).platform_fee_percent == Decimal("0.07")
    assert compute_fee(400, 1, schedule).platform_fee_percent == Decimal("0.07")
    assert compute_fee(401, 1, schedule).platform_fee_percent == Decimal("0.08")


def test_fee_defined_for_every_price_and_monotonic_within_slab():
    schedule = FeeSchedule(slabs=TIERED, booking_fee_percent=Decimal("0.02"))

    for quantity in (1, 3, 10):
        previous = None
        for price in range(0, 1200):
            fees = compute_fee(price, quantity, schedule)
            if previous is not None and previous[0] == fees.platform_fee_percent:
                assert fees.platform_fee >= previous[1]
            previous = (fees.platform_fee_percent, fees.platform_fee)


def test_rounding_is_half_up_on_the_total():
    schedule = FeeSchedule(slabs=(), platform_fee_percent=Decimal("0.05"))

    # 3 x 10 = 30 -> 1.5 rounds to 2; per-ticket rounding would give 3 x 1 = 3.
    fees = compute_fee(ticket_price=10, quantity=3, schedule=schedule)

    assert fees.platform_fee == 2


def test_booking_fee_is_added_to_amount_payable():
    schedule = FeeSchedule(slabs=TIERED, booking_fee_percent=Decimal("0.02"))

    fees = compute_fee(ticket_price=250, quantity=2, schedule=schedule)

    assert fees.booking_fee == 10
    assert fees.amount_payable == 510


def test_show_override_wins_over_slabs():
    schedule = FeeSchedule(slabs=TIERED)

    fees = compute_fee(250, 2, schedule, override=Decimal("0.10"))

    assert fees.platform_fee == 50


def test_flat_rate_without_slabs():
    schedule = FeeSchedule(slabs=(), platform_fee_percent=Decimal("0.08"))

    assert compute_fee(1000, 1, schedule).platform_fee == 80


def test_uncovered_price_is_a_configuration_error():
    schedule = FeeSchedule(slabs=_slabs((100, 199, "0.05")))

    with pytest.raises(ConfigurationError):
        compute_fee(50, 1, schedule)


@pytest.mark.parametrize("price,quantity", [(100, 0), (100, -1), (-5, 1)])
def test_invalid_inputs_rejected(price, quantity):
    with pytest.raises(ValidationError):
        compute_fee(price, quantity, FeeSchedule(slabs=TIERED))


# ---------------------
# SLAB VALIDATION
# ---------------------

def test_valid_slabs_are_sorted():
    shuffled = (TIERED[2], TIERED[0], TIERED[1])

    assert validate_slabs(shuffled) == TIERED


def test_empty_slab_set_is_allowed():
    assert validate_slabs([]) == ()


def test_gap_is_named():
    with pytest.raises(ValidationError) as exc:
        validate_slabs(_slabs((0, 199, "0.05"), (201, 400, "0.07")))

    assert any(
        "gap between slab 1 and slab 2: prices 200..200 not covered" in problem
        for problem in exc.value.details
    )


def test_overlap_is_named():
    with pytest.raises(ValidationError) as exc:
        validate_slabs(_slabs((0, 250, "0.05"), (200, None, "0.07")))

    assert any("overlap between slab 1 and slab 2" in p for p in exc.value.details)


def test_every_problem_is_reported():
    with pytest.raises(ValidationError) as exc:
        validate_slabs(_slabs((10, 5, "1.5"), (20, 30, "0.05")))

    details = exc.value.details
    assert any("max price must be greater than min price" in p for p in details)
    assert any("must be between 0 and 1" in p for p in details)
    assert any("gap before slab 1" in p for p in details)
    assert any("prices above 30 not covered" in p for p in details)


def test_unbounded_slab_must_be_last():
    with pytest.raises(ValidationError) as exc:
        validate_slabs(_slabs((0, None, "0.05"), (0, 100, "0.07")))

    assert any("unbounded" in p for p in exc.value.details)


@pytest.mark.parametrize(
    "rate,accepted",
    [("0.0725", True), ("0.07250", True), ("0.07255", False), ("0.123456", False)],
)
def test_rates_finer_than_stored_precision_are_rejected(rate, accepted):
    problems = validate_fee_percent(Decimal(rate), "platform_fee_percent")

    assert (problems == []) is accepted
    if not accepted:
        assert "more than 4 decimal places" in problems[0]
