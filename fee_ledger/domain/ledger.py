"""Ledger derivation: raw student record to a month-by-fee-type payment matrix."""
from __future__ import annotations

from decimal import Decimal

from .calendar import (
    ACADEMIC_MONTHS,
    INSURANCE_BUCKET,
    INSURANCE_KEY,
    REGISTRATION_KEY,
    academic_order,
    field_key,
    month_order,
)
from .models import (
    MONTHLY_FEE_TYPES,
    CellStatus,
    MonthLedger,
    PaymentCell,
    StudentLedgerView,
    StudentRecord,
)
from .money import ZERO


def cell_status(agreed: Decimal, paid: Decimal) -> CellStatus:
    if agreed == ZERO and paid == ZERO:
        return CellStatus.NOT_APPLICABLE
    if paid >= agreed:
        return CellStatus.PAID
    if paid > ZERO:
        return CellStatus.PARTIAL
    return CellStatus.UNPAID


def make_cell(agreed: Decimal, paid: Decimal, disabled: bool = False) -> PaymentCell:
    return PaymentCell(agreed=agreed, paid=paid, status=cell_status(agreed, paid), disabled=disabled)


def is_month_before_enrollment(student: StudentRecord, month: str) -> bool:
    if month == INSURANCE_BUCKET:
        return False
    current = month_order(month)
    if current is None:
        return False
    return current < academic_order(student.enrollment_month)


def derive_ledger(student: StudentRecord) -> StudentLedgerView:
    financial = student.financial
    months: dict[str, MonthLedger] = {}
    for month in ACADEMIC_MONTHS:
        disabled = is_month_before_enrollment(student, month)
        cells = {}
        for fee_type in MONTHLY_FEE_TYPES:
            key = field_key(month, fee_type)
            cells[fee_type] = make_cell(
                financial.agreed_amount(key),
                financial.paid_amount(key),
                disabled=disabled,
            )
        tuition, transport = cells["tuition"], cells["transport"]
        months[month] = MonthLedger(
            tuition=tuition,
            transport=transport,
            total=make_cell(
                tuition.agreed + transport.agreed,
                tuition.paid + transport.paid,
                disabled=disabled,
            ),
        )
    return StudentLedgerView(
        student_id=student.id,
        full_name=student.full_name,
        insurance=make_cell(financial.agreed_amount(INSURANCE_KEY), financial.paid_amount(INSURANCE_KEY)),
        registration=make_cell(
            financial.agreed_amount(REGISTRATION_KEY), financial.paid_amount(REGISTRATION_KEY)
        ),
        months=months,
    )


def ledger_keys() -> tuple[str, ...]:
    """Every financial key that counts towards a student's totals."""
    keys = [field_key(month, fee_type) for month in ACADEMIC_MONTHS for fee_type in MONTHLY_FEE_TYPES]
    keys.extend([INSURANCE_KEY, REGISTRATION_KEY])
    return tuple(keys)


def student_totals(student: StudentRecord) -> tuple[Decimal, Decimal]:
    """Summed (agreed, paid) over all ten months plus insurance and registration."""
    agreed = ZERO
    paid = ZERO
    for key in ledger_keys():
        agreed += student.financial.agreed_amount(key)
        paid += student.financial.paid_amount(key)
    return agreed, paid
