from decimal import Decimal

import pytest
import requests

from fee_ledger.domain.errors import SyncError
from fee_ledger.domain.repositories import AgreedWrite, PaymentWrite
from fee_ledger.infrastructure.repositories.http_store import HttpRecordStore


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.content = b"" if payload is None and not text else b"x"

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse(payload={"success": True})
        self.error = error
        self.calls = []

    def request(self, method, url, timeout=None, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error:
            raise self.error
        return self.response


def make_store(session: FakeSession) -> HttpRecordStore:
    return HttpRecordStore(base_url="http://backend.test/", timeout=2, session=session)


def test_fetch_roster_parses_students():
    session = FakeSession(
        FakeResponse(payload={"students": [{"id": "1", "fullName": "Ilyas Benali", "financial": {}}]})
    )

    records = make_store(session).fetch_roster("2024")

    assert [r.full_name for r in records] == ["Ilyas Benali"]
    method, url, kwargs = session.calls[0]
    assert (method, url) == ("GET", "http://backend.test/students")
    assert kwargs["params"] == {"schoolyearperiod": "2024"}


def test_write_payment_payload():
    session = FakeSession()
    write = PaymentWrite(
        student_id="1",
        amount=Decimal("500"),
        fee_type="tuition",
        month="september",
        academic_year_id="2024",
        cascade_agreed_amounts=True,
    )

    make_store(session).write_payment(write)

    method, url, kwargs = session.calls[0]
    assert url == "http://backend.test/payments/create_or_update"
    assert kwargs["json"] == {
        "student_id": "1",
        "amount": 500.0,
        "payment_type": "tuition",
        "school_year_period": "2024",
        "month": 9,
        "cascade_agreed_amounts": True,
    }


def test_insurance_writes_use_annual_endpoints():
    session = FakeSession()
    store = make_store(session)

    store.write_insurance_payment(
        PaymentWrite("1", Decimal("800"), "insurance", None, "2024", set_agreed_to_same=True)
    )
    store.write_insurance_agreed(AgreedWrite("1", Decimal("900"), "insurance", None, "2024"))

    assert session.calls[0][1].endswith("/payments/insurance")
    assert session.calls[0][2]["json"]["set_agreed_to_same"] is True
    assert "month" not in session.calls[0][2]["json"]
    assert session.calls[1][1].endswith("/payments/insurance/agreed")


def test_agreed_write_payload():
    session = FakeSession()

    make_store(session).write_agreed(AgreedWrite("1", Decimal("1200"), "transport", "january", "2024"))

    assert session.calls[0][1].endswith("/payments/agreed_changes")
    assert session.calls[0][2]["json"]["month"] == 1


def test_http_errors_become_sync_errors():
    session = FakeSession(FakeResponse(status_code=500, text="boom"))

    with pytest.raises(SyncError, match="500"):
        make_store(session).write_agreed(AgreedWrite("1", Decimal("1"), "tuition", "may", "2024"))


def test_network_errors_become_sync_errors():
    session = FakeSession(error=requests.ConnectionError("refused"))

    with pytest.raises(SyncError, match="Network error"):
        make_store(session).fetch_roster("2024")


def test_rejected_write_becomes_sync_error():
    session = FakeSession(FakeResponse(payload={"success": False, "message": "locked period"}))

    with pytest.raises(SyncError, match="locked period"):
        make_store(session).write_agreed(AgreedWrite("1", Decimal("1"), "tuition", "may", "2024"))
