"""Streamlit front-end for the fee ledger."""
from __future__ import annotations

import asyncio

import pandas as pd
import streamlit as st

from fee_ledger import EditController, HttpRecordStore, LedgerStore
from fee_ledger.application.dto import LedgerSnapshot
from fee_ledger.domain.calendar import ACADEMIC_MONTHS, INSURANCE_BUCKET
from fee_ledger.domain.errors import LedgerError, SyncError, ValidationError
from fee_ledger.domain.filters import STATISTIC_CATEGORIES, UNPAID_BUCKETS
from fee_ledger.domain.models import EditRequest, FilterSpec
from fee_ledger.presentation.ledger_report import buckets_frame, format_amount, ledger_frame


st.set_page_config(page_title="School Fees", layout="wide")
st.title("School Fee Dashboard")


def load_ledger(academic_year: str) -> LedgerStore:
    ledger = LedgerStore(HttpRecordStore(), academic_year)
    ledger.refresh_from_remote()
    return ledger


def show_summary(snapshot: LedgerSnapshot) -> None:
    summary = snapshot.summary
    cols = st.columns(5)
    cols[0].metric("Students", summary.total_students)
    cols[1].metric("Agreed", format_amount(summary.total_agreed))
    cols[2].metric("Paid", format_amount(summary.total_paid))
    cols[3].metric("Outstanding", format_amount(summary.outstanding_balance))
    cols[4].metric("Collection rate", f"{summary.collection_rate}%")


academic_year = st.text_input("Academic year", key="academic_year")
if academic_year and st.session_state.get("loaded_year") != academic_year:
    try:
        st.session_state["ledger"] = load_ledger(academic_year)
        st.session_state["loaded_year"] = academic_year
    except SyncError as exc:
        st.error(f"Could not load roster: {exc}")
        st.session_state.pop("ledger", None)

ledger: LedgerStore | None = st.session_state.get("ledger")
if ledger is None:
    st.info("Enter an academic year to load its students.")
    st.stop()

if st.button("Refresh"):
    try:
        ledger.refresh_from_remote()
    except SyncError as exc:
        st.warning(f"Refresh failed, showing last known data: {exc}")

col1, col2, col3 = st.columns(3)
with col1:
    category = st.selectbox("Category", ["", *STATISTIC_CATEGORIES])
with col2:
    unpaid_month = st.selectbox("Unpaid in", ["", *UNPAID_BUCKETS])
with col3:
    search = st.text_input("Search name or code")

spec = FilterSpec(statistic_category=category or None, unpaid_month=unpaid_month or None, search_query=search or None)
if spec != ledger.snapshot().filter_spec:
    ledger.set_filter(spec)

snapshot = ledger.snapshot()
class_options = {"": "All classes"}
class_options.update({b.class_id: f"{b.class_name} ({b.student_count})" for b in snapshot.buckets})
class_id = st.selectbox("Class", list(class_options), format_func=class_options.get)
if (class_id or None) != snapshot.selected_class_id:
    snapshot = ledger.select_class(class_id or None)

show_summary(snapshot)

tabs = st.tabs(["Payments", "Classes", "Unpaid months"])
with tabs[0]:
    st.dataframe(ledger_frame(snapshot.ledgers), use_container_width=True, hide_index=True)

    st.subheader("Edit a payment")
    students = {view.student_id: view.full_name for view in snapshot.ledgers}
    if students:
        e1, e2, e3, e4, e5 = st.columns([3, 2, 2, 2, 2])
        with e1:
            student_id = st.selectbox("Student", list(students), format_func=students.get)
        with e2:
            bucket = st.selectbox("Month", [*ACADEMIC_MONTHS, INSURANCE_BUCKET])
        with e3:
            fee_type = (
                "insurance" if bucket == INSURANCE_BUCKET else st.selectbox("Fee", ["tuition", "transport"])
            )
        with e4:
            edit_field = st.selectbox("Field", ["paid", "agreed"])
        with e5:
            amount = st.text_input("Amount")
        if st.button("Save"):
            request = EditRequest(
                student_id=student_id, bucket=bucket, fee_type=fee_type, field=edit_field, new_amount=amount
            )
            controller = EditController(ledger, refresh_after_commit=False)
            try:
                asyncio.run(controller.submit(request))
            except ValidationError as exc:
                st.error(str(exc))
            except LedgerError as exc:
                st.warning(f"Change was not saved and has been undone: {exc}")
            else:
                st.success("Saved")
                st.rerun()
        st.caption("Saved changes stay on screen; use Refresh to reload the roster from the server.")
with tabs[1]:
    st.dataframe(buckets_frame(snapshot.buckets), use_container_width=True, hide_index=True)
with tabs[2]:
    st.dataframe(
        pd.DataFrame(
            [{"month": month, "unpaid": count} for month, count in snapshot.unpaid_counts.items()]
        ),
        hide_index=True,
    )
    st.caption("Unpaid means nothing was paid that month (tuition and transport combined). Agreed amounts are ignored.")
