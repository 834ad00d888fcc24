import asyncio
from dataclasses import replace
from decimal import Decimal

import pytest

from fee_ledger.application.dto import EditState
from fee_ledger.application.edit_controller import EditController
from fee_ledger.application.ledger_store import LedgerStore
from fee_ledger.config import SETTINGS
from fee_ledger.domain.errors import EditInProgressError, SyncError, ValidationError
from fee_ledger.domain.ledger import derive_ledger
from fee_ledger.domain.models import CellStatus, ClassRef, EditRequest, FinancialFields, StudentRecord
from fee_ledger.domain.summary import compute_summary
from fee_ledger.infrastructure.repositories.memory_store import InMemoryRecordStore

YEAR = "2024-2025"


def make_student(student_id: str, class_id: str = "c1", agreed=None, actual=None) -> StudentRecord:
    return StudentRecord(
        id=student_id,
        full_name=f"Student {student_id}",
        class_ref=ClassRef(class_id=class_id, class_name=class_id.upper()),
        financial=FinancialFields(
            agreed={k: Decimal(v) for k, v in (agreed or {}).items()},
            actual={k: Decimal(v) for k, v in (actual or {}).items()},
        ),
    )


def make_ledger(store: InMemoryRecordStore) -> LedgerStore:
    return LedgerStore(store, YEAR, store.fetch_roster(YEAR))


def paid_edit(student_id: str, bucket: str, amount, fee_type: str = "tuition") -> EditRequest:
    return EditRequest(student_id=student_id, bucket=bucket, fee_type=fee_type, field="paid", new_amount=amount)


class GatedStore(InMemoryRecordStore):
    """Async store whose writes wait on a gate and may be told to fail."""

    def __init__(self, rosters):
        super().__init__(rosters)
        self.gate = asyncio.Event()
        self.failing_students: set[str] = set()
        self.ledger_seen = []

    async def write_payment(self, write):
        await self.gate.wait()
        if write.student_id in self.failing_students:
            raise SyncError("rejected by server")
        InMemoryRecordStore.write_payment(self, write)


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore(
        {
            YEAR: [
                make_student("s1", agreed={"october_tuition": "1000"}),
                make_student("s2", class_id="c2", agreed={"october_tuition": "2000"}, actual={"october_tuition": "2000"}),
            ]
        }
    )


def test_successful_edit_updates_cell_summary_and_store(store):
    ledger = make_ledger(store)
    controller = EditController(ledger, refresh_after_commit=False)

    outcome = asyncio.run(controller.submit(paid_edit("s1", "october", "900")))

    cell = derive_ledger(ledger.get_student("s1")).months["october"].tuition
    assert outcome.state is EditState.APPLIED
    assert cell.paid == Decimal("900")
    assert cell.status is CellStatus.PARTIAL
    assert ledger.summary.total_paid == Decimal("2900")
    assert ledger.summary == compute_summary(ledger.roster)
    assert store.writes[0].amount == Decimal("900")
    assert controller.last_state(outcome.request.cell_key) is EditState.APPLIED
    assert controller.state(outcome.request.cell_key) is EditState.IDLE


def test_rejected_edit_leaves_state_untouched(store):
    ledger = make_ledger(store)
    controller = EditController(ledger, refresh_after_commit=False)
    before = ledger.get_student("s1")
    summary = ledger.summary
    request = paid_edit("s1", "october", "3000")

    with pytest.raises(ValidationError):
        asyncio.run(controller.submit(request))

    assert ledger.get_student("s1") == before
    assert ledger.summary == summary
    assert store.writes == []
    assert controller.last_state(request.cell_key) is EditState.REJECTED


def test_unknown_student_is_rejected(store):
    controller = EditController(make_ledger(store), refresh_after_commit=False)

    with pytest.raises(ValidationError):
        asyncio.run(controller.submit(paid_edit("missing", "october", "100")))


def test_failed_write_rolls_back_cell_and_summary(store):
    ledger = make_ledger(store)
    controller = EditController(ledger, refresh_after_commit=False)
    before = derive_ledger(ledger.get_student("s1")).months["october"].tuition
    summary = ledger.summary
    store.fail_writes = True
    request = paid_edit("s1", "october", "900")

    with pytest.raises(SyncError):
        asyncio.run(controller.submit(request))

    assert derive_ledger(ledger.get_student("s1")).months["october"].tuition == before
    assert ledger.summary == summary
    assert controller.last_state(request.cell_key) is EditState.ROLLED_BACK


def test_failed_cascade_reverts_every_month():
    store = InMemoryRecordStore({YEAR: [make_student("s1")]})
    ledger = make_ledger(store)
    controller = EditController(ledger, refresh_after_commit=False)
    store.fail_writes = True

    with pytest.raises(SyncError):
        asyncio.run(controller.submit(paid_edit("s1", "september", "500")))

    view = derive_ledger(ledger.get_student("s1"))
    assert all(month.tuition.agreed == 0 for month in view.months.values())
    assert ledger.summary.total_agreed == 0


def test_cascade_is_sent_to_store():
    store = InMemoryRecordStore({YEAR: [make_student("s1")]})
    ledger = make_ledger(store)
    controller = EditController(ledger, refresh_after_commit=False)

    asyncio.run(controller.submit(paid_edit("s1", "september", "500")))

    [write] = store.writes
    assert write.cascade_agreed_amounts
    assert ledger.summary.total_agreed == Decimal("5000")
    assert list(store.fetch_roster(YEAR)) == list(ledger.roster)


def test_insurance_first_touch_write():
    store = InMemoryRecordStore({YEAR: [make_student("s1")]})
    ledger = make_ledger(store)
    controller = EditController(ledger, refresh_after_commit=False)

    asyncio.run(controller.submit(paid_edit("s1", "insurance", "800", fee_type="insurance")))

    [write] = store.writes
    assert write.month is None
    assert write.set_agreed_to_same
    assert derive_ledger(ledger.get_student("s1")).insurance.agreed == Decimal("800")


def test_local_mutation_happens_before_remote_call(store):
    ledger = make_ledger(store)
    seen = []

    class SpyStore(InMemoryRecordStore):
        def write_payment(self, write):
            seen.append((ledger.get_student("s1").financial.paid_amount("october_tuition"), ledger.summary.total_paid))
            super().write_payment(write)

    spy = SpyStore({YEAR: store.fetch_roster(YEAR)})
    ledger = LedgerStore(spy, YEAR, spy.fetch_roster(YEAR))
    controller = EditController(ledger, refresh_after_commit=False)

    asyncio.run(controller.submit(paid_edit("s1", "october", "900")))

    assert seen == [(Decimal("900"), Decimal("2900"))]


def test_edit_outside_selected_class_does_not_move_summary(store):
    ledger = make_ledger(store)
    ledger.select_class("c2")
    summary = ledger.summary
    controller = EditController(ledger, refresh_after_commit=False)

    asyncio.run(controller.submit(paid_edit("s1", "october", "900")))

    assert ledger.summary == summary


def test_concurrent_edits_roll_back_independently():
    async def scenario():
        store = GatedStore(
            {
                YEAR: [
                    make_student("s1", agreed={"october_tuition": "1000", "november_tuition": "1000"}),
                ]
            }
        )
        store.failing_students = {"s1"}
        ledger = make_ledger(store)
        controller = EditController(ledger, refresh_after_commit=False)
        first = asyncio.create_task(controller.submit(paid_edit("s1", "october", "400")))
        await asyncio.sleep(0)
        assert controller.state(paid_edit("s1", "october", "0").cell_key) is EditState.COMMITTING
        with pytest.raises(EditInProgressError):
            await controller.submit(paid_edit("s1", "october", "500"))
        # Same student, different cell: not blocked. Let the agreed write go through the sync path.
        agreed = EditRequest(student_id="s1", bucket="november", fee_type="tuition", field="agreed", new_amount="1200")
        await controller.submit(agreed)
        store.gate.set()
        with pytest.raises(SyncError):
            await first
        return ledger

    ledger = asyncio.run(scenario())

    student = ledger.get_student("s1")
    assert student.financial.paid_amount("october_tuition") == 0
    assert student.financial.agreed_amount("november_tuition") == Decimal("1200")
    assert ledger.summary == compute_summary(ledger.roster)


def test_failed_cascade_keeps_later_committed_agreed_edit():
    async def scenario():
        store = GatedStore({YEAR: [make_student("s1")]})
        store.failing_students = {"s1"}
        ledger = make_ledger(store)
        controller = EditController(ledger, refresh_after_commit=False)
        cascade = asyncio.create_task(controller.submit(paid_edit("s1", "september", "500")))
        await asyncio.sleep(0)
        assert ledger.get_student("s1").financial.agreed_amount("december_tuition") == Decimal("500")
        december = EditRequest(student_id="s1", bucket="december", fee_type="tuition", field="agreed", new_amount="800")
        await controller.submit(december)
        store.gate.set()
        with pytest.raises(SyncError):
            await cascade
        return store, ledger

    store, ledger = asyncio.run(scenario())

    local = ledger.get_student("s1").financial
    [remote] = store.fetch_roster(YEAR)
    assert local.agreed_amount("december_tuition") == Decimal("800")
    assert remote.financial.agreed_amount("december_tuition") == Decimal("800")
    assert local.paid_amount("september_tuition") == 0
    assert local.agreed_amount("september_tuition") == 0
    assert local.agreed_amount("june_tuition") == 0
    assert ledger.summary == compute_summary(ledger.roster)


def test_timeout_surfaces_as_sync_error():
    async def scenario():
        store = GatedStore({YEAR: [make_student("s1", agreed={"october_tuition": "1000"})]})
        ledger = make_ledger(store)
        controller = EditController(ledger, settings=replace(SETTINGS, request_timeout=0.01), refresh_after_commit=False)
        with pytest.raises(SyncError):
            await controller.submit(paid_edit("s1", "october", "400"))
        return ledger

    ledger = asyncio.run(scenario())

    assert ledger.get_student("s1").financial.paid_amount("october_tuition") == 0


def test_background_refresh_resyncs_roster(store):
    async def scenario():
        ledger = make_ledger(store)
        controller = EditController(ledger)
        await controller.submit(paid_edit("s1", "october", "900"))
        await controller.drain()
        return ledger

    ledger = asyncio.run(scenario())

    assert list(ledger.roster) == list(store.fetch_roster(YEAR))
    assert ledger.summary == compute_summary(ledger.roster)


def test_refresh_failure_keeps_optimistic_state(store):
    async def scenario():
        ledger = make_ledger(store)
        controller = EditController(ledger)
        store.fail_fetch = True
        await controller.submit(paid_edit("s1", "october", "900"))
        await controller.drain()
        return ledger

    ledger = asyncio.run(scenario())

    assert ledger.get_student("s1").financial.paid_amount("october_tuition") == Decimal("900")


def test_begin_and_cancel_make_no_remote_call(store):
    ledger = make_ledger(store)
    controller = EditController(ledger, refresh_after_commit=False)

    cell = controller.begin("s1", "october", "tuition", "paid")
    assert controller.state(cell) is EditState.EDITING
    controller.cancel(cell)

    assert controller.state(cell) is EditState.IDLE
    assert store.writes == []


def test_begin_rejects_cells_before_enrollment():
    student = replace(make_student("s1"), enrollment_month=11)
    ledger = LedgerStore(InMemoryRecordStore({YEAR: [student]}), YEAR, [student])
    controller = EditController(ledger, refresh_after_commit=False)

    with pytest.raises(ValidationError):
        controller.begin("s1", "september", "tuition", "paid")
