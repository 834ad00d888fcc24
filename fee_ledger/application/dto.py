"""Application-level DTOs for the ledger store and edit controller."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Sequence

from fee_ledger.domain.editing import EditTransaction
from fee_ledger.domain.models import EditRequest, FilterSpec, StudentLedgerView, StudentRecord
from fee_ledger.domain.results import ClassBucket, SectionGroup, SummarySnapshot


@dataclass(frozen=True)
class LedgerSnapshot:
    """Immutable view of the roster for one (version, filter, class) combination."""

    version: int
    academic_year_id: str
    filter_spec: FilterSpec
    selected_class_id: str | None
    filtered: Sequence[StudentRecord]
    selection: Sequence[StudentRecord]
    ledgers: Sequence[StudentLedgerView]
    buckets: Sequence[ClassBucket]
    sections: Sequence[SectionGroup]
    summary: SummarySnapshot
    category_counts: Mapping[str, int] = field(default_factory=dict)
    unpaid_counts: Mapping[str, int] = field(default_factory=dict)


class EditState(str, Enum):
    IDLE = "idle"
    EDITING = "editing"
    VALIDATING = "validating"
    REJECTED = "rejected"
    COMMITTING = "committing"
    APPLIED = "applied"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True)
class EditOutcome:
    request: EditRequest
    state: EditState
    transaction: EditTransaction | None = None
    message: str = ""
