"""
PayMaster - Payroll Calculator Primitives

Money rounding and pay period arithmetic shared by the calculators.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional


ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """Quantize to two decimal places, rounding half up."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PayPeriod:
    """Inclusive date range of a payroll run."""
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def overlaps(self, start: date, end: Optional[date]) -> bool:
        """True if [start, end] intersects the period; a missing end is open-ended."""
        return start <= self.end and (end is None or end >= self.start)

    def overlap_days(self, start: date, end: date) -> int:
        """Days of [start, end] inside the period, both ends inclusive."""
        first = max(start, self.start)
        last = min(end, self.end)
        if last < first:
            return 0
        return (last - first).days + 1
