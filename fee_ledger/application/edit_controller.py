"""Optimistic edit controller.

Each inline edit goes through ``begin -> submit``: the request is validated,
applied to the roster and summary immediately, and only then sent to the
record store. A failed write reverts exactly the fields the edit touched.
"""
from __future__ import annotations

import asyncio
import logging

from fee_ledger.application.dto import EditOutcome, EditState
from fee_ledger.application.ledger_store import LedgerStore
from fee_ledger.application.remote import call_store
from fee_ledger.config import SETTINGS, Settings
from fee_ledger.domain.calendar import INSURANCE_BUCKET
from fee_ledger.domain.editing import (
    EditTransaction,
    FieldChange,
    apply_changes,
    apply_transaction,
    changes_delta,
    plan_edit,
    reapplicable_changes,
    revert_changes,
    revertible_changes,
)
from fee_ledger.domain.errors import EditInProgressError, SyncError, ValidationError
from fee_ledger.domain.ledger import is_month_before_enrollment
from fee_ledger.domain.models import EditRequest
from fee_ledger.domain.repositories import AgreedWrite, PaymentWrite

logger = logging.getLogger(__name__)

CellKey = tuple[str, str, str, str]

_BUSY_STATES = (EditState.VALIDATING, EditState.COMMITTING)


class EditController:
    def __init__(
        self,
        ledger: LedgerStore,
        settings: Settings = SETTINGS,
        refresh_after_commit: bool = True,
    ) -> None:
        self._ledger = ledger
        self._settings = settings
        self._refresh_after_commit = refresh_after_commit
        self._states: dict[CellKey, EditState] = {}
        self._last: dict[CellKey, EditState] = {}
        self._in_flight: dict[CellKey, EditTransaction] = {}
        self._refresh_task: asyncio.Task | None = None
        self._refresh_pending = False

    def state(self, cell: CellKey) -> EditState:
        return self._states.get(cell, EditState.IDLE)

    def last_state(self, cell: CellKey) -> EditState | None:
        """How the most recent edit of ``cell`` ended, if any."""
        return self._last.get(cell)

    def begin(self, student_id: str, bucket: str, fee_type: str, field: str) -> CellKey:
        cell = (student_id, bucket, fee_type, field)
        if self.state(cell) in _BUSY_STATES:
            raise EditInProgressError(f"An edit for {bucket} {fee_type} is already being saved")
        student = self._ledger.get_student(student_id)
        if student is None:
            raise ValidationError(f"Unknown student {student_id!r}")
        if is_month_before_enrollment(student, bucket):
            raise ValidationError(f"Student was not enrolled in {bucket}")
        self._states[cell] = EditState.EDITING
        return cell

    def cancel(self, cell: CellKey) -> None:
        """Discard an editing cell; edits already being saved cannot be cancelled."""
        state = self.state(cell)
        if state in _BUSY_STATES:
            raise EditInProgressError("Edit is already being saved")
        self._states.pop(cell, None)

    def _settle(self, cell: CellKey, state: EditState) -> None:
        self._states.pop(cell, None)
        self._in_flight.pop(cell, None)
        self._last[cell] = state

    async def submit(self, request: EditRequest) -> EditOutcome:
        cell = request.cell_key
        if self.state(cell) in _BUSY_STATES:
            raise EditInProgressError(f"An edit for {request.bucket} {request.fee_type} is already being saved")
        self._states[cell] = EditState.VALIDATING

        student = self._ledger.get_student(request.student_id)
        try:
            if student is None:
                raise ValidationError(f"Unknown student {request.student_id!r}")
            transaction = plan_edit(student, request, self._settings)
        except ValidationError as exc:
            logger.info("Rejected edit %s: %s", cell, exc)
            self._settle(cell, EditState.REJECTED)
            raise

        self._ledger.replace_student(apply_transaction(student, transaction))
        generation = self._ledger.summary_generation
        counted = self._ledger.in_selection(student.id)
        if counted:
            self._ledger.apply_summary_delta(transaction.agreed_delta, transaction.paid_delta)
        self._states[cell] = EditState.COMMITTING
        self._in_flight[cell] = transaction

        try:
            await self._send(transaction)
        except asyncio.CancelledError:
            self._rollback(transaction, generation, counted)
            self._settle(cell, EditState.ROLLED_BACK)
            raise
        except Exception as exc:
            logger.warning("Remote write failed for %s, rolling back: %s", cell, exc)
            self._rollback(transaction, generation, counted)
            self._settle(cell, EditState.ROLLED_BACK)
            if isinstance(exc, SyncError):
                raise
            raise SyncError(f"Could not save the change: {exc}") from exc

        self._settle(cell, EditState.APPLIED)
        logger.info("Applied edit %s amount=%s cascade=%s", cell, transaction.amount, transaction.cascades)
        if self._refresh_after_commit:
            self._schedule_refresh()
        return EditOutcome(request=request, state=EditState.APPLIED, transaction=transaction)

    async def _send(self, transaction: EditTransaction) -> None:
        request = transaction.request
        store = self._ledger.record_store
        year = self._ledger.academic_year_id
        month = None if request.bucket == INSURANCE_BUCKET else request.bucket
        timeout = self._settings.request_timeout
        if request.field == "paid":
            write = PaymentWrite(
                student_id=request.student_id,
                amount=transaction.amount,
                fee_type=request.fee_type,
                month=month,
                academic_year_id=year,
                cascade_agreed_amounts=transaction.cascades,
                set_agreed_to_same=transaction.sets_agreed_to_same,
            )
            method = store.write_insurance_payment if transaction.is_insurance else store.write_payment
        else:
            write = AgreedWrite(
                student_id=request.student_id,
                amount=transaction.amount,
                fee_type=request.fee_type,
                month=month,
                academic_year_id=year,
            )
            method = store.write_insurance_agreed if transaction.is_insurance else store.write_agreed
        try:
            await asyncio.wait_for(call_store(method, write), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise SyncError(f"Record store did not answer within {timeout:g}s") from exc

    def _rollback(self, transaction: EditTransaction, generation: int, counted: bool) -> None:
        student_id = transaction.request.student_id
        current = self._ledger.get_student(student_id)
        reverted: tuple[FieldChange, ...] = ()
        if current is None:
            logger.warning("Student %s vanished before rollback", student_id)
        else:
            reverted = revertible_changes(current, transaction)
            skipped = len(transaction.changes) - len(reverted)
            if skipped:
                logger.info("Rollback for %s leaves %d field(s) changed by later edits", student_id, skipped)
            self._ledger.replace_student(revert_changes(current, reverted))
        if self._ledger.summary_generation != generation:
            self._ledger.recompute_summary()
        elif counted:
            self._ledger.apply_summary_delta(
                -changes_delta(reverted, "agreed"),
                -changes_delta(reverted, "actual"),
            )

    def _schedule_refresh(self) -> None:
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_pending = True
            return
        self._refresh_task = asyncio.get_running_loop().create_task(self._background_refresh())

    async def _background_refresh(self) -> None:
        while True:
            self._refresh_pending = False
            try:
                records = await self._ledger.fetch_remote_roster()
            except Exception as exc:
                logger.warning("Background refresh failed, keeping local state: %s", exc)
            else:
                self._ledger.load(records)
                self._reapply_in_flight()
            if not self._refresh_pending:
                return

    def _reapply_in_flight(self) -> None:
        if not self._in_flight:
            return
        for transaction in self._in_flight.values():
            current = self._ledger.get_student(transaction.request.student_id)
            if current is not None:
                self._ledger.replace_student(apply_changes(current, reapplicable_changes(current, transaction)))
        self._ledger.recompute_summary()

    async def drain(self) -> None:
        """Wait for the background refresh, if any, to finish."""
        task = self._refresh_task
        if task is not None:
            await task
