"""Pay computation against a frozen rate snapshot."""

from decimal import Decimal

from personnel_ledger.ledger.schemas import HoursBreakdown, RateSnapshot
from personnel_ledger.money import ZERO, to_decimal


def snapshot_rates(
    hourly_rate: Decimal | None,
    overtime_rate: Decimal | None,
    overtime_multiplier: Decimal,
    doubletime_multiplier: Decimal,
) -> RateSnapshot | None:
    """Freeze an identity's current rates, or None when no hourly rate is known.

    A missing overtime rate defaults to hourly * overtime_multiplier.
    """
    if hourly_rate is None:
        return None
    hourly = to_decimal(hourly_rate)
    overtime = (
        to_decimal(overtime_rate)
        if overtime_rate is not None
        else to_decimal(hourly * overtime_multiplier)
    )
    return RateSnapshot(
        hourly_rate=hourly,
        overtime_rate=overtime,
        doubletime_rate=to_decimal(hourly * doubletime_multiplier),
    )


ZERO_RATES = RateSnapshot(hourly_rate=ZERO, overtime_rate=ZERO, doubletime_rate=ZERO)


def compute_total_pay(hours: HoursBreakdown, rates: RateSnapshot) -> Decimal:
    """regular*hourly + overtime*overtime + doubletime*doubletime, to the cent.

    Example:
        8 regular + 1 overtime at 30.00/45.00 -> 285.00
    """
    total = (
        hours.regular * rates.hourly_rate
        + hours.overtime * rates.overtime_rate
        + hours.doubletime * rates.doubletime_rate
    )
    return to_decimal(total)
