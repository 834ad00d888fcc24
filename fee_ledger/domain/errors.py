"""Exceptions raised by the ledger engine."""
from __future__ import annotations


class LedgerError(Exception):
    """Base class for fee ledger errors."""


class ValidationError(LedgerError):
    """An edit was rejected locally before any mutation or remote call."""


class SyncError(LedgerError):
    """The remote record store failed to persist or return data."""


class EditInProgressError(LedgerError):
    """The cell already has an edit in flight."""
