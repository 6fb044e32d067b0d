"""
PayMaster - Override Filter

Caller-supplied skip-lists. Each aggregator filters its input through
these sets before iterating, so a skipped record never produces a day
count, an installment, a ledger row or a notification.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, TypeVar

T = TypeVar("T")


def _as_ids(values: Optional[Iterable[Any]]) -> FrozenSet[uuid.UUID]:
    if not values:
        return frozenset()
    return frozenset(v if isinstance(v, uuid.UUID) else uuid.UUID(str(v)) for v in values)


@dataclass(frozen=True)
class PayrollOverrides:
    """Identifiers excluded from a single generation or preview."""
    skipped_vacation_ids: FrozenSet[uuid.UUID] = field(default_factory=frozenset)
    skipped_loan_ids: FrozenSet[uuid.UUID] = field(default_factory=frozenset)
    skipped_event_ids: FrozenSet[uuid.UUID] = field(default_factory=frozenset)

    @classmethod
    def from_lists(
        cls,
        skipped_vacation_ids: Optional[Iterable[Any]] = None,
        skipped_loan_ids: Optional[Iterable[Any]] = None,
        skipped_event_ids: Optional[Iterable[Any]] = None,
    ) -> "PayrollOverrides":
        return cls(
            skipped_vacation_ids=_as_ids(skipped_vacation_ids),
            skipped_loan_ids=_as_ids(skipped_loan_ids),
            skipped_event_ids=_as_ids(skipped_event_ids),
        )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PayrollOverrides":
        data = data or {}
        return cls.from_lists(
            data.get("skipped_vacation_ids"),
            data.get("skipped_loan_ids"),
            data.get("skipped_event_ids"),
        )

    def excludes_vacation(self, vacation_id: uuid.UUID) -> bool:
        return vacation_id in self.skipped_vacation_ids

    def excludes_loan(self, loan_id: uuid.UUID) -> bool:
        return loan_id in self.skipped_loan_ids

    def excludes_event(self, event_id: uuid.UUID) -> bool:
        return event_id in self.skipped_event_ids

    def filter_vacations(self, vacations: Iterable[T]) -> List[T]:
        return [v for v in vacations if not self.excludes_vacation(v.id)]

    def filter_loans(self, loans: Iterable[T]) -> List[T]:
        return [loan for loan in loans if not self.excludes_loan(loan.id)]

    def filter_events(self, events: Iterable[T]) -> List[T]:
        return [e for e in events if not self.excludes_event(e.id)]

    def to_dict(self) -> Dict[str, List[str]]:
        """JSON-safe form stored on the payroll run."""
        return {
            "skipped_vacation_ids": sorted(str(i) for i in self.skipped_vacation_ids),
            "skipped_loan_ids": sorted(str(i) for i in self.skipped_loan_ids),
            "skipped_event_ids": sorted(str(i) for i in self.skipped_event_ids),
        }


NO_OVERRIDES = PayrollOverrides()
