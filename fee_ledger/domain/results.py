"""Aggregated results: class buckets, section groups and summary snapshots."""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Sequence

from .models import StudentRecord
from .money import ZERO, percentage

NO_CLASS_ID = "__no_class__"
NO_CLASS_NAME = "Unassigned"
NO_SECTION_NAME = "Unassigned"


@dataclass(frozen=True)
class ClassBucket:
    class_id: str
    class_name: str
    section_name: str | None
    students: Sequence[StudentRecord] = field(default_factory=tuple)
    total_agreed: Decimal = ZERO
    total_paid: Decimal = ZERO
    collection_rate: Decimal = ZERO
    fully_paid_count: int = 0
    unpaid_count: int = 0

    @property
    def student_count(self) -> int:
        return len(self.students)


@dataclass(frozen=True)
class SectionGroup:
    section_name: str
    buckets: Sequence[ClassBucket] = field(default_factory=tuple)
    total_students: int = 0
    total_agreed: Decimal = ZERO
    total_paid: Decimal = ZERO


@dataclass(frozen=True)
class SummarySnapshot:
    total_students: int
    total_agreed: Decimal
    total_paid: Decimal
    outstanding_balance: Decimal
    collection_rate: Decimal

    @classmethod
    def from_totals(cls, total_students: int, total_agreed: Decimal, total_paid: Decimal) -> "SummarySnapshot":
        return cls(
            total_students=total_students,
            total_agreed=total_agreed,
            total_paid=total_paid,
            outstanding_balance=total_agreed - total_paid,
            collection_rate=percentage(total_paid, total_agreed),
        )

    def with_delta(self, agreed_delta: Decimal = ZERO, paid_delta: Decimal = ZERO) -> "SummarySnapshot":
        if agreed_delta == ZERO and paid_delta == ZERO:
            return self
        return SummarySnapshot.from_totals(
            self.total_students,
            self.total_agreed + agreed_delta,
            self.total_paid + paid_delta,
        )


EMPTY_SUMMARY = SummarySnapshot.from_totals(0, ZERO, ZERO)
