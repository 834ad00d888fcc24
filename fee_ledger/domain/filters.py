"""Roster filtering and class/section bucketing."""
from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from typing import Callable, Mapping, Sequence

from .calendar import ACADEMIC_MONTHS, INSURANCE_BUCKET, INSURANCE_KEY, field_key
from .ledger import student_totals
from .models import FilterSpec, StudentRecord
from .money import ZERO, percentage
from .results import NO_CLASS_ID, NO_CLASS_NAME, NO_SECTION_NAME, ClassBucket, SectionGroup

CATEGORY_NEW = "new"
CATEGORY_LEFT = "left"
CATEGORY_REGISTERED = "registered"
CATEGORY_NOT_REGISTERED = "notRegistered"
CATEGORY_TRANSFER = "transfer"
CATEGORY_TOTAL = "total"

STATISTIC_CATEGORIES: tuple[str, ...] = (
    CATEGORY_NEW,
    CATEGORY_LEFT,
    CATEGORY_REGISTERED,
    CATEGORY_NOT_REGISTERED,
    CATEGORY_TRANSFER,
    CATEGORY_TOTAL,
)

UNPAID_BUCKETS: tuple[str, ...] = ACADEMIC_MONTHS + (INSURANCE_BUCKET,)


def _insurance_paid(student: StudentRecord) -> Decimal:
    return student.financial.paid_amount(INSURANCE_KEY)


_CATEGORY_PREDICATES: Mapping[str, Callable[[StudentRecord], bool]] = {
    CATEGORY_NEW: lambda s: s.is_new_student,
    CATEGORY_TRANSFER: lambda s: s.is_transfer_student,
    CATEGORY_REGISTERED: lambda s: _insurance_paid(s) > ZERO,
    CATEGORY_NOT_REGISTERED: lambda s: _insurance_paid(s) == ZERO,
}


def matches_search(student: StudentRecord, query: str) -> bool:
    needle = query.strip().lower()
    if not needle:
        return True
    return needle in student.full_name.lower() or needle in student.student_code.lower()


def matches_category(student: StudentRecord, category: str | None) -> bool:
    if category in (None, CATEGORY_TOTAL):
        return True
    if category == CATEGORY_LEFT:
        return student.is_left
    if student.is_left:
        return False
    predicate = _CATEGORY_PREDICATES.get(category)
    return predicate(student) if predicate else True


def is_unpaid_for_month(student: StudentRecord, month: str) -> bool:
    """Unpaid means nothing was paid; agreed amounts are ignored."""
    if month == INSURANCE_BUCKET:
        return _insurance_paid(student) == ZERO
    financial = student.financial
    paid = financial.paid_amount(field_key(month, "tuition")) + financial.paid_amount(field_key(month, "transport"))
    return paid == ZERO


def filter_roster(roster: Sequence[StudentRecord], spec: FilterSpec) -> list[StudentRecord]:
    result = list(roster)
    if spec.search_query and spec.search_query.strip():
        result = [s for s in result if matches_search(s, spec.search_query)]
    if spec.statistic_category not in (None, CATEGORY_TOTAL):
        result = [s for s in result if matches_category(s, spec.statistic_category)]
    if spec.unpaid_month:
        result = [s for s in result if is_unpaid_for_month(s, spec.unpaid_month)]
    return result


def _build_bucket(class_id: str, class_name: str, section_name: str | None, students: list[StudentRecord]) -> ClassBucket:
    total_agreed = ZERO
    total_paid = ZERO
    fully_paid = 0
    unpaid = 0
    for student in students:
        agreed, paid = student_totals(student)
        total_agreed += agreed
        total_paid += paid
        if agreed > ZERO and paid >= agreed:
            fully_paid += 1
        elif agreed > ZERO and paid == ZERO:
            unpaid += 1
    return ClassBucket(
        class_id=class_id,
        class_name=class_name,
        section_name=section_name,
        students=tuple(students),
        total_agreed=total_agreed,
        total_paid=total_paid,
        collection_rate=percentage(total_paid, total_agreed, places=1),
        fully_paid_count=fully_paid,
        unpaid_count=unpaid,
    )


def bucket_by_class(filtered: Sequence[StudentRecord]) -> list[ClassBucket]:
    """Group students by class in order of first appearance."""
    grouped: dict[str, list[StudentRecord]] = {}
    labels: dict[str, tuple[str, str | None]] = {}
    for student in filtered:
        ref = student.class_ref
        if ref is None:
            class_id, label = NO_CLASS_ID, (NO_CLASS_NAME, None)
        else:
            class_id, label = ref.class_id, (ref.class_name, ref.section_name)
        grouped.setdefault(class_id, []).append(student)
        labels.setdefault(class_id, label)
    return [
        _build_bucket(class_id, labels[class_id][0], labels[class_id][1], students)
        for class_id, students in grouped.items()
    ]


def group_by_section(buckets: Sequence[ClassBucket]) -> list[SectionGroup]:
    grouped: dict[str, list[ClassBucket]] = defaultdict(list)
    for bucket in buckets:
        grouped[bucket.section_name or NO_SECTION_NAME].append(bucket)
    return [
        SectionGroup(
            section_name=name,
            buckets=tuple(items),
            total_students=sum(b.student_count for b in items),
            total_agreed=sum((b.total_agreed for b in items), ZERO),
            total_paid=sum((b.total_paid for b in items), ZERO),
        )
        for name, items in grouped.items()
    ]


def count_by_category(roster: Sequence[StudentRecord]) -> dict[str, int]:
    counts = {category: 0 for category in STATISTIC_CATEGORIES}
    for student in roster:
        for category in STATISTIC_CATEGORIES:
            if matches_category(student, category):
                counts[category] += 1
    return counts


def count_unpaid_by_month(roster: Sequence[StudentRecord]) -> dict[str, int]:
    return {month: sum(1 for s in roster if is_unpaid_for_month(s, month)) for month in UNPAID_BUCKETS}
