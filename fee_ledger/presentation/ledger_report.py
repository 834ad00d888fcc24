"""Tabular views of ledgers, class buckets and summaries."""
from __future__ import annotations

from decimal import Decimal
from typing import Sequence

import pandas as pd

from fee_ledger.domain.calendar import ACADEMIC_MONTHS
from fee_ledger.domain.models import PaymentCell, StudentLedgerView
from fee_ledger.domain.results import ClassBucket, SummarySnapshot


def format_amount(amount: Decimal) -> str:
    return f"{amount:,.0f} DH"


def format_cell(cell: PaymentCell) -> str:
    if cell.disabled:
        return "Not enrolled"
    return f"{format_amount(cell.paid)} / {format_amount(cell.agreed)}"


def ledger_to_rows(ledgers: Sequence[StudentLedgerView]) -> list[dict[str, str]]:
    rows: list[dict[str, str]] = []
    for view in ledgers:
        row = {
            "student_id": view.student_id,
            "full_name": view.full_name,
            "insurance": format_cell(view.insurance),
            "insurance_status": view.insurance.status.value,
        }
        for month in ACADEMIC_MONTHS:
            month_ledger = view.months[month]
            row[month] = format_cell(month_ledger.tuition)
            row[f"{month}_transport"] = "" if month_ledger.transport.is_absent else format_cell(month_ledger.transport)
            row[f"{month}_status"] = month_ledger.total.status.value
        rows.append(row)
    return rows


def ledger_frame(ledgers: Sequence[StudentLedgerView]) -> pd.DataFrame:
    rows = ledger_to_rows(ledgers)
    frame = pd.DataFrame(rows)
    if frame.empty:
        return frame
    # Drop transport columns nobody is billed for.
    transport_cols = [f"{month}_transport" for month in ACADEMIC_MONTHS]
    empty = [col for col in transport_cols if (frame[col] == "").all()]
    return frame.drop(columns=empty)


def buckets_to_rows(buckets: Sequence[ClassBucket]) -> list[dict[str, object]]:
    return [
        {
            "class_id": bucket.class_id,
            "class_name": bucket.class_name,
            "section_name": bucket.section_name or "",
            "students": bucket.student_count,
            "total_agreed": float(bucket.total_agreed),
            "total_paid": float(bucket.total_paid),
            "collection_rate": float(bucket.collection_rate),
            "fully_paid": bucket.fully_paid_count,
            "unpaid": bucket.unpaid_count,
        }
        for bucket in buckets
    ]


def buckets_frame(buckets: Sequence[ClassBucket]) -> pd.DataFrame:
    return pd.DataFrame(
        buckets_to_rows(buckets),
        columns=[
            "class_id",
            "class_name",
            "section_name",
            "students",
            "total_agreed",
            "total_paid",
            "collection_rate",
            "fully_paid",
            "unpaid",
        ],
    )


def summary_lines(summary: SummarySnapshot) -> list[str]:
    return [
        f"Students: {summary.total_students}",
        f"Total agreed: {format_amount(summary.total_agreed)}",
        f"Total paid: {format_amount(summary.total_paid)}",
        f"Outstanding: {format_amount(summary.outstanding_balance)}",
        f"Collection rate: {summary.collection_rate}%",
    ]
