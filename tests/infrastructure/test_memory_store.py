from decimal import Decimal

import pytest

from fee_ledger.domain.calendar import ACADEMIC_MONTHS
from fee_ledger.domain.errors import SyncError
from fee_ledger.domain.repositories import AgreedWrite, PaymentWrite
from fee_ledger.infrastructure.repositories.memory_store import InMemoryRecordStore


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore.from_payload("2024", [{"id": "1", "fullName": "Salma Ouazzani"}])


def test_cascading_payment(store):
    store.write_payment(PaymentWrite("1", Decimal("450"), "transport", "march", "2024", cascade_agreed_amounts=True))

    [student] = store.fetch_roster("2024")
    assert student.financial.paid_amount("march_transport") == Decimal("450")
    assert student.financial.agreed_amount("february_transport") == 0
    assert all(
        student.financial.agreed_amount(f"{m}_transport") == Decimal("450") for m in ACADEMIC_MONTHS[6:]
    )


def test_insurance_agreed(store):
    store.write_insurance_agreed(AgreedWrite("1", Decimal("700"), "insurance", None, "2024"))

    [student] = store.fetch_roster("2024")
    assert student.financial.agreed_amount("annualInsurance") == Decimal("700")


def test_unknown_student_and_failures(store):
    with pytest.raises(SyncError):
        store.write_agreed(AgreedWrite("2", Decimal("1"), "tuition", "may", "2024"))

    store.fail_writes = True
    with pytest.raises(SyncError):
        store.write_agreed(AgreedWrite("1", Decimal("1"), "tuition", "may", "2024"))
    assert store.writes == []
