"""HTTP-backed record store talking to the school backend."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

import requests
from requests.exceptions import RequestException

from fee_ledger.config import SETTINGS
from fee_ledger.domain.calendar import CALENDAR_MONTH_NUMBERS
from fee_ledger.domain.errors import SyncError
from fee_ledger.domain.models import StudentRecord
from fee_ledger.domain.repositories import AgreedWrite, PaymentWrite, RecordStore
from fee_ledger.infrastructure.parsing.records import parse_roster

logger = logging.getLogger(__name__)

ROSTER_PATH = "/students"
PAYMENT_PATH = "/payments/create_or_update"
AGREED_PATH = "/payments/agreed_changes"
INSURANCE_PAYMENT_PATH = "/payments/insurance"
INSURANCE_AGREED_PATH = "/payments/insurance/agreed"


def _month_number(month: str | None) -> int | None:
    if month is None:
        return None
    return CALENDAR_MONTH_NUMBERS[month]


def payment_payload(write: PaymentWrite) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "student_id": write.student_id,
        "amount": float(write.amount),
        "payment_type": write.fee_type,
        "school_year_period": write.academic_year_id,
    }
    if write.month is not None:
        payload["month"] = _month_number(write.month)
        payload["cascade_agreed_amounts"] = write.cascade_agreed_amounts
    else:
        payload["set_agreed_to_same"] = write.set_agreed_to_same
    return payload


def agreed_payload(write: AgreedWrite) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "student_id": write.student_id,
        "amount": float(write.amount),
        "payment_type": write.fee_type,
        "school_year_period": write.academic_year_id,
    }
    if write.month is not None:
        payload["month"] = _month_number(write.month)
    return payload


class HttpRecordStore(RecordStore):
    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = (base_url or SETTINGS.backend_url).rstrip("/")
        self._timeout = timeout if timeout is not None else SETTINGS.request_timeout
        self._session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = self._url(path)
        try:
            response = self._session.request(method, url, timeout=self._timeout, **kwargs)
        except RequestException as exc:
            raise SyncError(f"Network error contacting {url}: {type(exc).__name__}: {exc}") from exc
        if response.status_code >= 400:
            raise SyncError(f"{method} {path} failed: {response.status_code} {response.text}")
        if not response.content:
            return None
        try:
            data = response.json()
        except ValueError as exc:
            raise SyncError(f"{method} {path} returned a non-JSON response") from exc
        if isinstance(data, Mapping) and data.get("success") is False:
            raise SyncError(str(data.get("message") or f"{method} {path} was rejected"))
        return data

    def fetch_roster(self, academic_year_id: str) -> Sequence[StudentRecord]:
        data = self._request("GET", ROSTER_PATH, params={"schoolyearperiod": academic_year_id})
        if isinstance(data, Mapping):
            data = data.get("students", [])
        if not isinstance(data, list):
            raise SyncError("Roster response has no student list")
        records = parse_roster(data)
        logger.debug("Fetched %d students for %s", len(records), academic_year_id)
        return records

    def write_payment(self, write: PaymentWrite) -> None:
        self._request("POST", PAYMENT_PATH, json=payment_payload(write))

    def write_agreed(self, write: AgreedWrite) -> None:
        self._request("POST", AGREED_PATH, json=agreed_payload(write))

    def write_insurance_payment(self, write: PaymentWrite) -> None:
        self._request("POST", INSURANCE_PAYMENT_PATH, json=payment_payload(write))

    def write_insurance_agreed(self, write: AgreedWrite) -> None:
        self._request("POST", INSURANCE_AGREED_PATH, json=agreed_payload(write))
