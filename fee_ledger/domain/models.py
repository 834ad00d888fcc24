"""Domain models for the fee ledger.

Student records are the external input; cells and ledger views are derived
from them and never stored.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Literal, Mapping

from .calendar import DEFAULT_ENROLLMENT_MONTH
from .money import ZERO, coerce_amount

FeeType = Literal["tuition", "transport", "insurance"]
EditField = Literal["paid", "agreed"]

MONTHLY_FEE_TYPES: tuple[str, ...] = ("tuition", "transport")


class EnrollmentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    WITHDRAWN = "WITHDRAWN"
    SUSPENDED = "SUSPENDED"
    GRADUATED = "GRADUATED"
    TRANSFERRED = "TRANSFERRED"


LEFT_STATUSES = frozenset(
    {
        EnrollmentStatus.WITHDRAWN,
        EnrollmentStatus.SUSPENDED,
        EnrollmentStatus.GRADUATED,
        EnrollmentStatus.TRANSFERRED,
    }
)


class CellStatus(str, Enum):
    PAID = "paid"
    PARTIAL = "partial"
    UNPAID = "unpaid"
    NOT_APPLICABLE = "notApplicable"


@dataclass(frozen=True)
class ClassRef:
    class_id: str
    class_name: str
    section_name: str | None = None


@dataclass(frozen=True)
class FinancialFields:
    """Agreed and actual (paid) amounts keyed by ``"{month}_{fee_type}"`` or annual key."""

    agreed: Mapping[str, Decimal] = field(default_factory=dict)
    actual: Mapping[str, Decimal] = field(default_factory=dict)

    def agreed_amount(self, key: str) -> Decimal:
        return coerce_amount(self.agreed.get(key))

    def paid_amount(self, key: str) -> Decimal:
        return coerce_amount(self.actual.get(key))

    def with_changes(
        self,
        agreed: Mapping[str, Decimal] | None = None,
        actual: Mapping[str, Decimal] | None = None,
    ) -> "FinancialFields":
        new_agreed = dict(self.agreed)
        new_actual = dict(self.actual)
        new_agreed.update(agreed or {})
        new_actual.update(actual or {})
        return FinancialFields(agreed=new_agreed, actual=new_actual)


@dataclass(frozen=True)
class StudentRecord:
    id: str
    full_name: str
    student_code: str = ""
    enrollment_status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    is_new_student: bool = False
    is_transfer_student: bool = False
    enrollment_month: int = DEFAULT_ENROLLMENT_MONTH
    class_ref: ClassRef | None = None
    financial: FinancialFields = field(default_factory=FinancialFields)

    @property
    def is_left(self) -> bool:
        return self.enrollment_status in LEFT_STATUSES


@dataclass(frozen=True)
class PaymentCell:
    agreed: Decimal
    paid: Decimal
    status: CellStatus
    disabled: bool = False

    @property
    def is_absent(self) -> bool:
        """No fee was ever set for this cell; transport cells like this are not rendered."""
        return self.agreed == ZERO and self.paid == ZERO


@dataclass(frozen=True)
class MonthLedger:
    tuition: PaymentCell
    transport: PaymentCell
    total: PaymentCell


@dataclass(frozen=True)
class StudentLedgerView:
    student_id: str
    full_name: str
    insurance: PaymentCell
    registration: PaymentCell
    months: Mapping[str, MonthLedger]


@dataclass(frozen=True)
class FilterSpec:
    statistic_category: str | None = None
    unpaid_month: str | None = None
    search_query: str | None = None

    def is_empty(self) -> bool:
        return (
            self.statistic_category in (None, "total")
            and not self.unpaid_month
            and not (self.search_query or "").strip()
        )


@dataclass(frozen=True)
class EditRequest:
    student_id: str
    bucket: str
    fee_type: FeeType
    field: EditField
    new_amount: object

    @property
    def cell_key(self) -> tuple[str, str, str, str]:
        return (self.student_id, self.bucket, self.fee_type, self.field)
