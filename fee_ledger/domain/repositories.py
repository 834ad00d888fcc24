"""Repository interfaces anchoring the domain layer."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol, Sequence

from .models import StudentRecord


@dataclass(frozen=True)
class PaymentWrite:
    """A paid-amount edit; ``month`` is None for the annual insurance bucket."""

    student_id: str
    amount: Decimal
    fee_type: str
    month: str | None
    academic_year_id: str
    cascade_agreed_amounts: bool = False
    set_agreed_to_same: bool = False


@dataclass(frozen=True)
class AgreedWrite:
    student_id: str
    amount: Decimal
    fee_type: str
    month: str | None
    academic_year_id: str


class RecordStore(Protocol):
    """Remote source of truth for rosters; every write raises SyncError on failure."""

    def fetch_roster(self, academic_year_id: str) -> Sequence[StudentRecord]:
        ...

    def write_payment(self, write: PaymentWrite) -> None:
        ...

    def write_agreed(self, write: AgreedWrite) -> None:
        ...

    def write_insurance_payment(self, write: PaymentWrite) -> None:
        ...

    def write_insurance_agreed(self, write: AgreedWrite) -> None:
        ...
