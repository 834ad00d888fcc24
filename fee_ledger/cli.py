"""Command-line entrypoint printing the fee summary of an academic year."""
from __future__ import annotations

import argparse
import logging
import sys

from fee_ledger.application.ledger_store import LedgerStore
from fee_ledger.domain.errors import SyncError
from fee_ledger.domain.filters import STATISTIC_CATEGORIES, UNPAID_BUCKETS
from fee_ledger.domain.models import FilterSpec
from fee_ledger.infrastructure.repositories.http_store import HttpRecordStore
from fee_ledger.presentation.ledger_report import buckets_frame, ledger_frame, summary_lines


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Show school fee collection status for an academic year")
    parser.add_argument("academic_year", type=str, help="Academic year identifier")
    parser.add_argument("--backend-url", type=str, help="Override the backend base URL")
    parser.add_argument("--category", choices=STATISTIC_CATEGORIES, help="Statistic category filter")
    parser.add_argument("--unpaid-month", choices=UNPAID_BUCKETS, help="Only students who paid nothing that month")
    parser.add_argument("--search", type=str, help="Name or student code substring")
    parser.add_argument("--class-id", type=str, help="Restrict the summary and grid to one class")
    parser.add_argument("--ledger", action="store_true", help="Print the per-student payment grid")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default WARNING)")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or sys.argv[1:])
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    ledger = LedgerStore(HttpRecordStore(base_url=args.backend_url), args.academic_year)
    try:
        ledger.refresh_from_remote()
    except SyncError as exc:
        print(f"Could not load roster: {exc}", file=sys.stderr)
        return 1

    ledger.set_filter(
        FilterSpec(
            statistic_category=args.category,
            unpaid_month=args.unpaid_month,
            search_query=args.search,
        )
    )
    snapshot = ledger.select_class(args.class_id)

    print("Fee Summary")
    print("===========")
    for line in summary_lines(snapshot.summary):
        print(line)

    print("\nClasses")
    frame = buckets_frame(snapshot.buckets)
    print(frame.to_string(index=False) if not frame.empty else "No classes match the filters.")

    if args.ledger:
        print("\nPayment grid")
        grid = ledger_frame(snapshot.ledgers)
        print(grid.to_string(index=False) if not grid.empty else "No students.")

    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
