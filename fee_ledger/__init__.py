"""School fee ledger derivation and optimistic editing engine."""
from fee_ledger.application.edit_controller import EditController
from fee_ledger.application.ledger_store import LedgerStore
from fee_ledger.domain.filters import bucket_by_class, filter_roster
from fee_ledger.domain.ledger import derive_ledger
from fee_ledger.domain.summary import compute_summary
from fee_ledger.infrastructure.repositories.http_store import HttpRecordStore
from fee_ledger.infrastructure.repositories.memory_store import InMemoryRecordStore

__all__ = [
    "EditController",
    "LedgerStore",
    "bucket_by_class",
    "filter_roster",
    "derive_ledger",
    "compute_summary",
    "HttpRecordStore",
    "InMemoryRecordStore",
]
