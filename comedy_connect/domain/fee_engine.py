# comedy_connect/domain/fee_engine.py

"""
Platform and booking fee calculation.

A fee schedule is an ordered set of price slabs, each mapping an inclusive
ticket price range to a fee rate. Rates are fractions in [0, 1] and all money
is integer minor-currency units.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Sequence

from comedy_connect.domain.exceptions import ConfigurationError, ValidationError


ZERO = Decimal("0")
ONE = Decimal("1")
# Rate columns are Numeric(5, 4)
RATE_QUANTUM = Decimal("0.0001")


@dataclass(frozen=True)
class FeeSlab:
    min_price: int
    max_price: int | None
    fee_percent: Decimal

    def contains(self, price: int) -> bool:
        if price < self.min_price:
            return False
        return self.max_price is None or price <= self.max_price

    def describe(self) -> str:
        upper = "∞" if self.max_price is None else str(self.max_price)
        return f"[{self.min_price}..{upper}] @ {self.fee_percent}"


@dataclass(frozen=True)
class FeeSchedule:
    slabs: tuple[FeeSlab, ...] = ()
    platform_fee_percent: Decimal = Decimal("0.08")
    booking_fee_percent: Decimal = ZERO
    version: int = 0

    def platform_rate_for(self, ticket_price: int) -> Decimal:
        if not self.slabs:
            return self.platform_fee_percent

        for slab in self.slabs:
            if slab.contains(ticket_price):
                return slab.fee_percent

        raise ConfigurationError(
            f"No fee slab covers ticket price {ticket_price}"
        )


@dataclass(frozen=True)
class FeeBreakdown:
    total_amount: int
    platform_fee: int
    booking_fee: int
    platform_fee_percent: Decimal = field(default=ZERO)

    @property
    def amount_payable(self) -> int:
        # The platform fee comes out of the creator's payout; only the
        # booking fee is charged on top of the tickets.
        return self.total_amount + self.booking_fee


def round_half_away_from_zero(value: Decimal) -> int:
    return int(value.quantize(ONE, rounding=ROUND_HALF_UP))


def compute_fee(
    ticket_price: int,
    quantity: int,
    schedule: FeeSchedule,
    override: Decimal | None = None,
) -> FeeBreakdown:
    if quantity <= 0:
        raise ValidationError("Quantity must be greater than 0")
    if ticket_price < 0:
        raise ValidationError("Ticket price cannot be negative")

    total_amount = ticket_price * quantity

    if override is not None:
        rate = Decimal(override)
    else:
        rate = schedule.platform_rate_for(ticket_price)

    # Rounded once on the order total so per-ticket rounding never accumulates.
    platform_fee = round_half_away_from_zero(Decimal(total_amount) * rate)
    booking_fee = round_half_away_from_zero(
        Decimal(total_amount) * Decimal(schedule.booking_fee_percent)
    )

    return FeeBreakdown(
        total_amount=total_amount,
        platform_fee=platform_fee,
        booking_fee=booking_fee,
        platform_fee_percent=rate,
    )


def validate_fee_percent(value: Decimal, label: str) -> list[str]:
    if value < ZERO or value > ONE:
        return [f"{label}: fee percent {value} must be between 0 and 1"]
    if value != value.quantize(RATE_QUANTUM):
        return [f"{label}: fee percent {value} has more than 4 decimal places"]
    return []


def validate_slabs(slabs: Iterable[FeeSlab]) -> tuple[FeeSlab, ...]:
    """
    Sort and validate a slab set before it is written.

    Every problem is collected so a single ValidationError lists all of
    the offending slabs. An empty set is accepted and means the flat
    platform fee applies to every price.
    """
    ordered: Sequence[FeeSlab] = sorted(slabs, key=lambda s: s.min_price)
    problems: list[str] = []

    for index, slab in enumerate(ordered, start=1):
        label = f"slab {index} {slab.describe()}"
        if slab.min_price < 0:
            problems.append(f"{label}: min price cannot be negative")
        if slab.max_price is not None and slab.max_price <= slab.min_price:
            problems.append(f"{label}: max price must be greater than min price")
        problems.extend(validate_fee_percent(slab.fee_percent, label))

    if ordered:
        first = ordered[0]
        if first.min_price > 0:
            problems.append(
                f"gap before slab 1: prices 0..{first.min_price - 1} not covered"
            )

        for index in range(1, len(ordered)):
            previous, current = ordered[index - 1], ordered[index]
            if previous.max_price is None:
                problems.append(
                    f"overlap between slab {index} and slab {index + 1}: "
                    f"slab {index} is unbounded but is not the last slab"
                )
                continue

            expected_min = previous.max_price + 1
            if current.min_price > expected_min:
                problems.append(
                    f"gap between slab {index} and slab {index + 1}: "
                    f"prices {expected_min}..{current.min_price - 1} not covered"
                )
            elif current.min_price < expected_min:
                problems.append(
                    f"overlap between slab {index} and slab {index + 1}: "
                    f"prices {current.min_price}..{previous.max_price} covered twice"
                )

        last = ordered[-1]
        if last.max_price is not None:
            problems.append(
                f"slab {len(ordered)} ends at {last.max_price}: "
                f"prices above {last.max_price} not covered"
            )

    if problems:
        raise ValidationError(
            "Invalid fee slabs",
            details=problems,
        )

    return tuple(ordered)
