"""Edit validation and planning.

An edit is planned against the current student record into an
:class:`EditTransaction` that lists every field it touches with its before and
after value. Applying the transaction writes the ``after`` values; reverting it
writes the ``before`` values back, but only to fields that still hold the
transaction's ``after`` value, so concurrent edits on the same student survive
a rollback.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Literal, Sequence

from fee_ledger.config import SETTINGS, Settings

from .calendar import INSURANCE_BUCKET, INSURANCE_KEY, field_key, is_academic_month, months_from
from .errors import ValidationError
from .ledger import is_month_before_enrollment
from .models import MONTHLY_FEE_TYPES, EditRequest, StudentRecord
from .money import ZERO, parse_decimal

Side = Literal["agreed", "actual"]


@dataclass(frozen=True)
class FieldChange:
    side: Side
    key: str
    before: Decimal
    after: Decimal

    @property
    def delta(self) -> Decimal:
        return self.after - self.before


@dataclass(frozen=True)
class EditTransaction:
    request: EditRequest
    amount: Decimal
    key: str
    changes: Sequence[FieldChange] = field(default_factory=tuple)
    cascades: bool = False
    sets_agreed_to_same: bool = False

    @property
    def agreed_delta(self) -> Decimal:
        return changes_delta(self.changes, "agreed")

    @property
    def paid_delta(self) -> Decimal:
        return changes_delta(self.changes, "actual")

    @property
    def is_insurance(self) -> bool:
        return self.request.bucket == INSURANCE_BUCKET


def _check_target(student: StudentRecord, request: EditRequest) -> str:
    if request.field not in ("paid", "agreed"):
        raise ValidationError(f"Unknown edit field {request.field!r}")
    if request.bucket == INSURANCE_BUCKET:
        if request.fee_type != "insurance":
            raise ValidationError("Insurance bucket only accepts the insurance fee type")
        return INSURANCE_KEY
    if not is_academic_month(request.bucket):
        raise ValidationError(f"Unknown bucket {request.bucket!r}")
    if request.fee_type not in MONTHLY_FEE_TYPES:
        raise ValidationError(f"Fee type {request.fee_type!r} is not billed monthly")
    if is_month_before_enrollment(student, request.bucket):
        raise ValidationError(f"Student was not enrolled in {request.bucket}")
    return field_key(request.bucket, request.fee_type)


def _parse_amount(value: object) -> Decimal:
    amount = parse_decimal(value)
    if amount < ZERO:
        raise ValidationError("Amount cannot be negative")
    return amount


def plan_edit(student: StudentRecord, request: EditRequest, settings: Settings = SETTINGS) -> EditTransaction:
    """Validate ``request`` against ``student``; raises ValidationError on the first failed rule."""
    key = _check_target(student, request)
    amount = _parse_amount(request.new_amount)
    insurance = request.bucket == INSURANCE_BUCKET
    financial = student.financial
    current_agreed = financial.agreed_amount(key)
    current_paid = financial.paid_amount(key)

    if request.field == "agreed":
        ceiling = settings.max_insurance_agreed if insurance else settings.max_monthly_agreed
        if amount > ceiling:
            raise ValidationError(f"Agreed amount cannot exceed {ceiling} DH")
        if current_paid > ZERO and amount < current_paid:
            raise ValidationError(
                f"Agreed amount ({amount} DH) cannot be smaller than already paid amount ({current_paid} DH)"
            )
        return EditTransaction(
            request=request,
            amount=amount,
            key=key,
            changes=(FieldChange("agreed", key, current_agreed, amount),),
        )

    ceiling = settings.max_insurance_paid if insurance else settings.max_monthly_paid
    if amount > ceiling:
        raise ValidationError(f"Amount cannot exceed {ceiling} DH")
    if current_agreed > ZERO and amount > current_agreed:
        raise ValidationError(f"Amount cannot exceed agreed amount of {current_agreed} DH")

    changes = [FieldChange("actual", key, current_paid, amount)]
    sets_agreed_to_same = insurance and current_agreed == ZERO and current_paid == ZERO and amount > ZERO
    cascades = not insurance and current_agreed == ZERO and amount > ZERO
    if sets_agreed_to_same:
        changes.append(FieldChange("agreed", key, current_agreed, amount))
    if cascades:
        for month in months_from(request.bucket):
            month_key = field_key(month, request.fee_type)
            changes.append(FieldChange("agreed", month_key, financial.agreed_amount(month_key), amount))
    return EditTransaction(
        request=request,
        amount=amount,
        key=key,
        changes=tuple(changes),
        cascades=cascades,
        sets_agreed_to_same=sets_agreed_to_same,
    )


def current_value(student: StudentRecord, change: FieldChange) -> Decimal:
    if change.side == "agreed":
        return student.financial.agreed_amount(change.key)
    return student.financial.paid_amount(change.key)


def revertible_changes(student: StudentRecord, transaction: EditTransaction) -> tuple[FieldChange, ...]:
    """Changes whose field still holds the value this transaction wrote."""
    return tuple(c for c in transaction.changes if current_value(student, c) == c.after)


def reapplicable_changes(student: StudentRecord, transaction: EditTransaction) -> tuple[FieldChange, ...]:
    """Changes whose field still holds the value this transaction was planned against."""
    return tuple(c for c in transaction.changes if current_value(student, c) == c.before)


def changes_delta(changes: Sequence[FieldChange], side: Side) -> Decimal:
    return sum((c.delta for c in changes if c.side == side), ZERO)


def _write(student: StudentRecord, changes: Sequence[FieldChange], use_before: bool) -> StudentRecord:
    agreed: dict[str, Decimal] = {}
    actual: dict[str, Decimal] = {}
    for change in changes:
        target = agreed if change.side == "agreed" else actual
        target[change.key] = change.before if use_before else change.after
    return replace(student, financial=student.financial.with_changes(agreed=agreed, actual=actual))


def apply_changes(student: StudentRecord, changes: Sequence[FieldChange]) -> StudentRecord:
    return _write(student, changes, use_before=False)


def revert_changes(student: StudentRecord, changes: Sequence[FieldChange]) -> StudentRecord:
    return _write(student, changes, use_before=True)


def apply_transaction(student: StudentRecord, transaction: EditTransaction) -> StudentRecord:
    return apply_changes(student, transaction.changes)


def revert_transaction(student: StudentRecord, transaction: EditTransaction) -> StudentRecord:
    """Write ``before`` back to the fields this transaction still owns.

    A field another edit has overwritten since is left alone.
    """
    return revert_changes(student, revertible_changes(student, transaction))
