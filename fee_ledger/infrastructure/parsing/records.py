"""Roster payload parsing: raw JSON-like dicts to canonical student records.

The roster is external data, so malformed fields are coerced rather than
rejected: amounts fall back to 0, unknown statuses to ACTIVE and out-of-range
enrollment months to September.
"""
from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from fee_ledger.domain.calendar import DEFAULT_ENROLLMENT_MONTH
from fee_ledger.domain.models import ClassRef, EnrollmentStatus, FinancialFields, StudentRecord
from fee_ledger.domain.money import coerce_amount

logger = logging.getLogger(__name__)

_TRUE_STRINGS = {"1", "true", "yes", "y"}


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in _TRUE_STRINGS


def parse_enrollment_month(value: object) -> int:
    """Calendar month 1-12; JSON floats such as ``11.0`` are accepted when integral."""
    if value is None or isinstance(value, bool):
        return DEFAULT_ENROLLMENT_MONTH
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        return DEFAULT_ENROLLMENT_MONTH
    if not number.is_finite() or number != number.to_integral_value():
        return DEFAULT_ENROLLMENT_MONTH
    month = int(number)
    if 1 <= month <= 12:
        return month
    return DEFAULT_ENROLLMENT_MONTH


def parse_status(value: object) -> EnrollmentStatus:
    text = "" if value is None else str(value).strip().upper()
    try:
        return EnrollmentStatus(text)
    except ValueError:
        if text:
            logger.warning("Unknown enrollment status %r treated as ACTIVE", value)
        return EnrollmentStatus.ACTIVE


def parse_class_ref(raw: object) -> ClassRef | None:
    if not isinstance(raw, Mapping):
        return None
    class_id = raw.get("classId")
    if class_id in (None, ""):
        return None
    section = raw.get("sectionName")
    return ClassRef(
        class_id=str(class_id),
        class_name=str(raw.get("className") or ""),
        section_name=str(section) if section else None,
    )


def parse_amounts(raw: object) -> dict[str, Decimal]:
    if not isinstance(raw, Mapping):
        return {}
    return {str(key): coerce_amount(value) for key, value in raw.items() if key is not None}


def parse_student(raw: Mapping[str, Any]) -> StudentRecord:
    financial = raw.get("financial")
    if not isinstance(financial, Mapping):
        financial = {}
    return StudentRecord(
        id=str(raw.get("id") or raw.get("_id") or ""),
        full_name=str(raw.get("fullName") or "").strip(),
        student_code=str(raw.get("studentCode") or "").strip(),
        enrollment_status=parse_status(raw.get("enrollmentStatus")),
        is_new_student=parse_bool(raw.get("isNewStudent")),
        is_transfer_student=parse_bool(raw.get("isTransferStudent")),
        enrollment_month=parse_enrollment_month(raw.get("enrollmentMonth")),
        class_ref=parse_class_ref(raw.get("classRef")),
        financial=FinancialFields(
            agreed=parse_amounts(financial.get("agreed")),
            actual=parse_amounts(financial.get("actual")),
        ),
    )


def parse_roster(payload: Iterable[Mapping[str, Any]]) -> list[StudentRecord]:
    records: list[StudentRecord] = []
    for raw in payload:
        if not isinstance(raw, Mapping):
            logger.warning("Skipping roster entry of type %s", type(raw).__name__)
            continue
        record = parse_student(raw)
        if not record.id:
            logger.warning("Skipping roster entry without id: %r", raw.get("fullName"))
            continue
        records.append(record)
    return records
