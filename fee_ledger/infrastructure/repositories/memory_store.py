"""In-memory record store, used for demos and tests."""
from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import Any, Iterable, Mapping, Sequence

from fee_ledger.domain.calendar import INSURANCE_KEY, field_key, months_from
from fee_ledger.domain.errors import SyncError
from fee_ledger.domain.models import StudentRecord
from fee_ledger.domain.repositories import AgreedWrite, PaymentWrite, RecordStore
from fee_ledger.infrastructure.parsing.records import parse_roster


class InMemoryRecordStore(RecordStore):
    """Keeps rosters per academic year and applies writes the way the backend does.

    Set ``fail_writes`` or ``fail_fetch`` to simulate an unreachable backend.
    """

    def __init__(self, rosters: Mapping[str, Iterable[StudentRecord]] | None = None) -> None:
        self._rosters: dict[str, dict[str, StudentRecord]] = {}
        for year, records in (rosters or {}).items():
            self._rosters[year] = {record.id: record for record in records}
        self.writes: list[PaymentWrite | AgreedWrite] = []
        self.fail_writes = False
        self.fail_fetch = False

    @classmethod
    def from_payload(cls, academic_year_id: str, payload: Iterable[Mapping[str, Any]]) -> "InMemoryRecordStore":
        return cls({academic_year_id: parse_roster(payload)})

    def fetch_roster(self, academic_year_id: str) -> Sequence[StudentRecord]:
        if self.fail_fetch:
            raise SyncError("Record store unavailable")
        return list(self._rosters.get(academic_year_id, {}).values())

    def _student(self, academic_year_id: str, student_id: str) -> StudentRecord:
        try:
            return self._rosters[academic_year_id][student_id]
        except KeyError as exc:
            raise SyncError(f"Unknown student {student_id} for {academic_year_id}") from exc

    def _save(
        self,
        academic_year_id: str,
        student: StudentRecord,
        agreed: Mapping[str, Decimal] | None = None,
        actual: Mapping[str, Decimal] | None = None,
    ) -> None:
        updated = replace(student, financial=student.financial.with_changes(agreed=agreed, actual=actual))
        self._rosters[academic_year_id][student.id] = updated

    def _begin_write(self, write: PaymentWrite | AgreedWrite) -> StudentRecord:
        if self.fail_writes:
            raise SyncError("Record store unavailable")
        student = self._student(write.academic_year_id, write.student_id)
        self.writes.append(write)
        return student

    def write_payment(self, write: PaymentWrite) -> None:
        student = self._begin_write(write)
        key = field_key(write.month, write.fee_type)
        agreed = {}
        if write.cascade_agreed_amounts:
            agreed = {field_key(month, write.fee_type): write.amount for month in months_from(write.month)}
        self._save(write.academic_year_id, student, agreed=agreed, actual={key: write.amount})

    def write_agreed(self, write: AgreedWrite) -> None:
        student = self._begin_write(write)
        self._save(write.academic_year_id, student, agreed={field_key(write.month, write.fee_type): write.amount})

    def write_insurance_payment(self, write: PaymentWrite) -> None:
        student = self._begin_write(write)
        agreed = {INSURANCE_KEY: write.amount} if write.set_agreed_to_same else {}
        self._save(write.academic_year_id, student, agreed=agreed, actual={INSURANCE_KEY: write.amount})

    def write_insurance_agreed(self, write: AgreedWrite) -> None:
        student = self._begin_write(write)
        self._save(write.academic_year_id, student, agreed={INSURANCE_KEY: write.amount})
