"""Central configuration for the fee ledger package."""
from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Context, Decimal

DEFAULT_BACKEND_URL = "http://localhost:5000"
DEFAULT_TIMEOUT_SECONDS = 15.0

# Policy ceilings for inline edits, in DH.
MAX_MONTHLY_PAID = Decimal("2500")
MAX_MONTHLY_AGREED = Decimal("5000")
MAX_INSURANCE_PAID = Decimal("1500")
MAX_INSURANCE_AGREED = Decimal("1500")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(slots=True, frozen=True)
class Settings:
    decimal_context: Context
    backend_url: str
    request_timeout: float
    max_monthly_paid: Decimal
    max_monthly_agreed: Decimal
    max_insurance_paid: Decimal
    max_insurance_agreed: Decimal


SETTINGS = Settings(
    decimal_context=Context(prec=28),
    backend_url=(os.environ.get("FEE_LEDGER_BACKEND_URL") or DEFAULT_BACKEND_URL).rstrip("/"),
    request_timeout=_env_float("FEE_LEDGER_TIMEOUT", DEFAULT_TIMEOUT_SECONDS),
    max_monthly_paid=MAX_MONTHLY_PAID,
    max_monthly_agreed=MAX_MONTHLY_AGREED,
    max_insurance_paid=MAX_INSURANCE_PAID,
    max_insurance_agreed=MAX_INSURANCE_AGREED,
)
