"""Roster holder: the single source of truth for one academic year."""
from __future__ import annotations

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Iterable, Sequence

from fee_ledger.application.dto import LedgerSnapshot
from fee_ledger.application.remote import call_store
from fee_ledger.domain.filters import (
    bucket_by_class,
    count_by_category,
    count_unpaid_by_month,
    filter_roster,
    group_by_section,
)
from fee_ledger.domain.ledger import derive_ledger
from fee_ledger.domain.models import FilterSpec, StudentRecord
from fee_ledger.domain.repositories import RecordStore
from fee_ledger.domain.results import EMPTY_SUMMARY, NO_CLASS_ID, SummarySnapshot
from fee_ledger.domain.summary import compute_summary

logger = logging.getLogger(__name__)


def _class_id(student: StudentRecord) -> str:
    return student.class_ref.class_id if student.class_ref else NO_CLASS_ID


class LedgerStore:
    """Holds the roster, the active filter and class selection, and the running summary.

    Views are recomputed from the roster on demand and cached per
    ``(version, filter, class)``. The summary is the exception: it is fully
    recomputed when the roster is loaded or the selection changes, and adjusted
    incrementally by edits in between.
    """

    def __init__(
        self,
        record_store: RecordStore,
        academic_year_id: str,
        roster: Iterable[StudentRecord] = (),
    ) -> None:
        self._record_store = record_store
        self._academic_year_id = academic_year_id
        self._roster: list[StudentRecord] = list(roster)
        self._filter = FilterSpec()
        self._selected_class_id: str | None = None
        self._version = 0
        self._summary_generation = 0
        self._selection_ids: frozenset[str] = frozenset()
        self._summary = EMPTY_SUMMARY
        self._cache: tuple[tuple[int, FilterSpec, str | None], LedgerSnapshot] | None = None
        self.recompute_summary()

    @property
    def academic_year_id(self) -> str:
        return self._academic_year_id

    @property
    def record_store(self) -> RecordStore:
        return self._record_store

    @property
    def roster(self) -> tuple[StudentRecord, ...]:
        return tuple(self._roster)

    @property
    def version(self) -> int:
        return self._version

    @property
    def summary(self) -> SummarySnapshot:
        return self._summary

    @property
    def summary_generation(self) -> int:
        return self._summary_generation

    def _narrow(self, filtered: list[StudentRecord]) -> list[StudentRecord]:
        if self._selected_class_id is None:
            return filtered
        return [s for s in filtered if _class_id(s) == self._selected_class_id]

    def _selection(self) -> list[StudentRecord]:
        return self._narrow(filter_roster(self._roster, self._filter))

    def recompute_summary(self) -> SummarySnapshot:
        selection = self._selection()
        self._selection_ids = frozenset(s.id for s in selection)
        self._summary = compute_summary(selection)
        self._summary_generation += 1
        return self._summary

    def load(self, roster: Iterable[StudentRecord]) -> LedgerSnapshot:
        self._roster = list(roster)
        self._version += 1
        self.recompute_summary()
        logger.info("Loaded %d students for academic year %s", len(self._roster), self._academic_year_id)
        return self.snapshot()

    def set_filter(self, spec: FilterSpec) -> LedgerSnapshot:
        self._filter = spec
        self.recompute_summary()
        return self.snapshot()

    def select_class(self, class_id: str | None) -> LedgerSnapshot:
        self._selected_class_id = class_id
        self.recompute_summary()
        return self.snapshot()

    def refresh_from_remote(self) -> LedgerSnapshot:
        """Blocking resync; SyncError propagates and leaves the roster untouched."""
        records = self._record_store.fetch_roster(self._academic_year_id)
        return self.load(records)

    async def fetch_remote_roster(self) -> Sequence[StudentRecord]:
        return await call_store(self._record_store.fetch_roster, self._academic_year_id)

    async def refresh_from_remote_async(self) -> LedgerSnapshot:
        records = await self.fetch_remote_roster()
        return self.load(records)

    def get_student(self, student_id: str) -> StudentRecord | None:
        for student in self._roster:
            if student.id == student_id:
                return student
        return None

    def replace_student(self, record: StudentRecord) -> None:
        for index, student in enumerate(self._roster):
            if student.id == record.id:
                self._roster[index] = record
                self._version += 1
                return
        raise KeyError(record.id)

    def in_selection(self, student_id: str) -> bool:
        return student_id in self._selection_ids

    def apply_summary_delta(self, agreed_delta: Decimal, paid_delta: Decimal) -> SummarySnapshot:
        self._summary = self._summary.with_delta(agreed_delta, paid_delta)
        return self._summary

    def snapshot(self) -> LedgerSnapshot:
        cache_key = (self._version, self._filter, self._selected_class_id)
        if self._cache is not None and self._cache[0] == cache_key:
            return replace(self._cache[1], summary=self._summary)
        filtered = filter_roster(self._roster, self._filter)
        selection = self._narrow(filtered)
        buckets = bucket_by_class(filtered)
        snapshot = LedgerSnapshot(
            version=self._version,
            academic_year_id=self._academic_year_id,
            filter_spec=self._filter,
            selected_class_id=self._selected_class_id,
            filtered=tuple(filtered),
            selection=tuple(selection),
            ledgers=tuple(derive_ledger(s) for s in selection),
            buckets=tuple(buckets),
            sections=tuple(group_by_section(buckets)),
            summary=self._summary,
            category_counts=count_by_category(self._roster),
            unpaid_counts=count_unpaid_by_month(filtered),
        )
        self._cache = (cache_key, snapshot)
        return snapshot
