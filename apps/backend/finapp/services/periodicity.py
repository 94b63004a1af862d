"""Calendar arithmetic for fixed-account periodicities."""

from __future__ import annotations

from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from finapp.models import Periodicity


_MONTH_STEPS: dict[Periodicity, int] = {
    Periodicity.MONTHLY: 1,
    Periodicity.QUARTERLY: 3,
    Periodicity.YEARLY: 12,
}

# (monthly factor, yearly factor)
_EQUIVALENT_FACTORS: dict[Periodicity, tuple[float, float]] = {
    Periodicity.DAILY: (30.0, 365.0),
    Periodicity.WEEKLY: (4.33, 52.0),  # 52 weeks / 12 months
    Periodicity.MONTHLY: (1.0, 12.0),
    Periodicity.QUARTERLY: (1 / 3, 4.0),
    Periodicity.YEARLY: (1 / 12, 1.0),
}


def next_due_date(current: date, periodicity: Periodicity | str, anchor_day: int | None = None) -> date:
    """Advance ``current`` by one period.

    Month based periods keep ``anchor_day`` (defaults to ``current.day``) and
    clamp it to the last day of shorter months, so a schedule anchored on the
    31st yields Jan 31, Feb 28, Mar 31 instead of drifting.
    """
    periodicity = Periodicity(periodicity)
    if periodicity == Periodicity.DAILY:
        return current + timedelta(days=1)
    if periodicity == Periodicity.WEEKLY:
        return current + timedelta(days=7)
    months = _MONTH_STEPS[periodicity]
    day = anchor_day or current.day
    # relativedelta clamps an absolute day past month end
    return current + relativedelta(months=months, day=day)


def iter_due_dates(
    start: date,
    periodicity: Periodicity | str,
    *,
    anchor_day: int | None = None,
    until: date | None = None,
    limit: int | None = None,
):
    """Yield ``start`` and the following due dates.

    Month based schedules are anchored on ``anchor_day`` (defaults to ``start.day``).
    """
    if until is None and limit is None:
        raise ValueError("either until or limit is required")
    current = start
    produced = 0
    while (until is None or current <= until) and (limit is None or produced < limit):
        yield current
        produced += 1
        current = next_due_date(current, periodicity, anchor_day=anchor_day or start.day)


def monthly_equivalent(amount: float, periodicity: Periodicity | str) -> float:
    return float(amount) * _EQUIVALENT_FACTORS[Periodicity(periodicity)][0]


def yearly_equivalent(amount: float, periodicity: Periodicity | str) -> float:
    return float(amount) * _EQUIVALENT_FACTORS[Periodicity(periodicity)][1]
