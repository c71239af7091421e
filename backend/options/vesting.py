"""
Vesting calculator
------------------
Pure functions of a grant's terms and a date: no queries, no writes.

A grant vests ``cliff_months / vesting_duration_months`` of its quantity on the
cliff date, then the remainder in equal periods (1, 3 or 12 months) until
``grant_date + vesting_duration_months``. Vested quantities are always whole
units, rounded down.

``grant`` can be an OptionGrant or any object exposing the same attributes.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from dateutil.relativedelta import relativedelta  # type: ignore
from django.utils import timezone

from backoffice.decimals import CENT, decimal_str, floor_units, safe_dec

PERIOD_MONTHS = {
    "MONTHLY": 1,
    "QUARTERLY": 3,
    "ANNUALLY": 12,
}

SCHEDULE_TYPES = {
    "MONTHLY": "MONTHLY",
    "QUARTERLY": "QUARTERLY",
    "ANNUALLY": "ANNUAL",
}

ZERO = Decimal("0")


@dataclass(frozen=True)
class VestingStatus:
    vested_quantity: Decimal
    unvested_quantity: Decimal
    exercisable_quantity: Decimal
    vesting_percentage: Decimal
    cliff_date: date
    cliff_met: bool
    next_vesting_date: Optional[date]
    next_vesting_amount: Decimal

    def as_dict(self) -> dict:
        return {
            "vestedQuantity": decimal_str(self.vested_quantity),
            "unvestedQuantity": decimal_str(self.unvested_quantity),
            "exercisableQuantity": decimal_str(self.exercisable_quantity),
            "vestingPercentage": str(self.vesting_percentage),
            "cliffDate": self.cliff_date.isoformat(),
            "cliffMet": self.cliff_met,
            "nextVestingDate": self.next_vesting_date.isoformat() if self.next_vesting_date else None,
            "nextVestingAmount": decimal_str(self.next_vesting_amount),
        }


@dataclass(frozen=True)
class VestingEvent:
    date: date
    quantity: Decimal
    cumulative: Decimal
    type: str

    def as_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "quantity": decimal_str(self.quantity),
            "cumulative": decimal_str(self.cumulative),
            "type": self.type,
        }


def add_months(d: date, months: int) -> date:
    return d + relativedelta(months=+months)


def months_between(start: date, end: date) -> int:
    """Whole months from start to end; 0 when end is before start."""
    if end <= start:
        return 0
    rd = relativedelta(end, start)
    return rd.years * 12 + rd.months


def period_months(frequency: str) -> int:
    return PERIOD_MONTHS.get((frequency or "MONTHLY").upper(), 1)


def cliff_vest_amount(quantity: Decimal, cliff_months: int, vesting_duration_months: int) -> Decimal:
    if not vesting_duration_months:
        return safe_dec(quantity)
    return safe_dec(quantity) * cliff_months / vesting_duration_months


def _post_cliff_terms(grant):
    quantity = safe_dec(grant.quantity)
    cliff_months = int(grant.cliff_months or 0)
    duration = int(grant.vesting_duration_months or 0)
    period = period_months(grant.vesting_frequency)

    cliff_amount = cliff_vest_amount(quantity, cliff_months, duration)
    periods = max(duration - cliff_months, 0) // period
    per_period = (quantity - cliff_amount) / periods if periods > 0 else ZERO
    return quantity, cliff_amount, period, periods, per_period


def _periods_elapsed(cliff_date: date, today: date, period: int) -> int:
    # month-end clamping can put a period date before a whole calendar month
    elapsed = months_between(cliff_date, today) // period
    while add_months(cliff_date, (elapsed + 1) * period) <= today:
        elapsed += 1
    return elapsed


def _percentage(vested: Decimal, quantity: Decimal) -> Decimal:
    if quantity <= 0:
        return ZERO.quantize(CENT)
    return (vested / quantity * 100).quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_vesting(grant, on_date: Optional[date] = None) -> VestingStatus:
    today = on_date or timezone.localdate()
    quantity, cliff_amount, period, _, per_period = _post_cliff_terms(grant)
    exercised = safe_dec(grant.exercised)

    cliff_date = add_months(grant.grant_date, int(grant.cliff_months or 0))
    vesting_end = add_months(grant.grant_date, int(grant.vesting_duration_months or 0))

    # Terminated or fully exercised: vesting no longer moves
    if grant.status != "ACTIVE":
        fully = grant.status == "EXERCISED"
        vested = quantity if fully else ZERO
        return VestingStatus(
            vested_quantity=vested,
            unvested_quantity=quantity - vested,
            exercisable_quantity=max(vested - exercised, ZERO),
            vesting_percentage=Decimal("100.00") if fully else Decimal("0.00"),
            cliff_date=cliff_date,
            cliff_met=fully,
            next_vesting_date=None,
            next_vesting_amount=ZERO,
        )

    if today < cliff_date:
        return VestingStatus(
            vested_quantity=ZERO,
            unvested_quantity=quantity,
            exercisable_quantity=ZERO,
            vesting_percentage=Decimal("0.00"),
            cliff_date=cliff_date,
            cliff_met=False,
            next_vesting_date=cliff_date,
            next_vesting_amount=floor_units(cliff_amount),
        )

    if today >= vesting_end:
        return VestingStatus(
            vested_quantity=quantity,
            unvested_quantity=ZERO,
            exercisable_quantity=max(quantity - exercised, ZERO),
            vesting_percentage=Decimal("100.00"),
            cliff_date=cliff_date,
            cliff_met=True,
            next_vesting_date=None,
            next_vesting_amount=ZERO,
        )

    periods_elapsed = _periods_elapsed(cliff_date, today, period)
    vested = floor_units(min(quantity, cliff_amount + per_period * periods_elapsed))

    next_date = add_months(cliff_date, (periods_elapsed + 1) * period)
    if next_date > vesting_end:
        next_date = None

    return VestingStatus(
        vested_quantity=vested,
        unvested_quantity=quantity - vested,
        exercisable_quantity=max(vested - exercised, ZERO),
        vesting_percentage=_percentage(vested, quantity),
        cliff_date=cliff_date,
        cliff_met=True,
        next_vesting_date=next_date,
        next_vesting_amount=floor_units(per_period) if next_date else ZERO,
    )


def generate_vesting_schedule(grant) -> List[VestingEvent]:
    """
    Every vesting event of the grant, in date order. Each entry's cumulative
    equals what calculate_vesting reports on that date, and the last entry's
    cumulative is exactly the grant quantity.
    """
    quantity, cliff_amount, period, periods, per_period = _post_cliff_terms(grant)
    cliff_months = int(grant.cliff_months or 0)
    cliff_date = add_months(grant.grant_date, cliff_months)
    vesting_end = add_months(grant.grant_date, int(grant.vesting_duration_months or 0))
    event_type = SCHEDULE_TYPES.get((grant.vesting_frequency or "MONTHLY").upper(), "MONTHLY")

    schedule: List[VestingEvent] = []
    cumulative = ZERO

    if cliff_months > 0:
        cumulative = floor_units(cliff_amount)
        schedule.append(VestingEvent(cliff_date, cumulative, cumulative, "CLIFF"))

    for i in range(1, periods + 1):
        vest_date = add_months(cliff_date, i * period)
        if i == periods and vest_date >= vesting_end:
            target = quantity
        else:
            target = floor_units(min(quantity, cliff_amount + per_period * i))
        schedule.append(VestingEvent(vest_date, target - cumulative, target, event_type))
        cumulative = target

    # months left over after the last whole period vest at the end date
    if cumulative < quantity:
        schedule.append(VestingEvent(vesting_end, quantity - cumulative, quantity, event_type))

    return schedule
