"""Summary aggregation over a selection of students."""
from __future__ import annotations

from typing import Iterable

from .ledger import student_totals
from .models import StudentRecord
from .money import ZERO
from .results import SummarySnapshot


def compute_summary(students: Iterable[StudentRecord]) -> SummarySnapshot:
    """Full recompute; the incremental edit deltas must converge to this."""
    count = 0
    total_agreed = ZERO
    total_paid = ZERO
    for student in students:
        agreed, paid = student_totals(student)
        total_agreed += agreed
        total_paid += paid
        count += 1
    return SummarySnapshot.from_totals(count, total_agreed, total_paid)
