"""Academic calendar helpers.

The school year runs September through June. Months are addressed by their
lowercase English name, which is also the prefix of the financial field keys
(``"october_tuition"``, ``"october_transport"``).
"""
from __future__ import annotations

ACADEMIC_MONTHS: tuple[str, ...] = (
    "september",
    "october",
    "november",
    "december",
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
)

CALENDAR_MONTH_NUMBERS: dict[str, int] = {
    "september": 9,
    "october": 10,
    "november": 11,
    "december": 12,
    "january": 1,
    "february": 2,
    "march": 3,
    "april": 4,
    "may": 5,
    "june": 6,
}

INSURANCE_BUCKET = "insurance"
INSURANCE_KEY = "annualInsurance"
REGISTRATION_KEY = "annualRegistration"

DEFAULT_ENROLLMENT_MONTH = 9


def academic_order(calendar_month: int) -> int:
    """Position of a calendar month in the school year (September=1 ... June=10)."""
    if calendar_month >= 9:
        return calendar_month - 8
    return calendar_month + 4


def month_order(month: str) -> int | None:
    number = CALENDAR_MONTH_NUMBERS.get(month)
    if number is None:
        return None
    return academic_order(number)


def months_from(month: str) -> tuple[str, ...]:
    """The given month and every later month of the school year."""
    index = ACADEMIC_MONTHS.index(month)
    return ACADEMIC_MONTHS[index:]


def field_key(month: str, fee_type: str) -> str:
    return f"{month}_{fee_type}"


def is_academic_month(value: str) -> bool:
    return value in CALENDAR_MONTH_NUMBERS
