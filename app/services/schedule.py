"""
Batch schedule helpers and teacher payout projection.

A batch recurrence is a comma separated list of slots such as
"TUE 17:00-18:00, THU 17:00-18:00". Only the leading weekday token of each
slot matters here.
"""
import calendar
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set, Tuple

# Python's date.weekday(): Monday == 0
DAY_TOKENS = {"MON": 0, "TUE": 1, "WED": 2, "THU": 3, "FRI": 4, "SAT": 5, "SUN": 6}

PAYOUT_BASIS_FIXED = "Fixed monthly salary"

Session = Tuple[str, date]


def scheduled_days(recurrence: Optional[str]) -> Set[int]:
    if not recurrence:
        return set()
    days = set()
    for slot in recurrence.split(","):
        parts = slot.strip().split(" ")
        token = parts[0].upper() if parts else ""
        if token in DAY_TOKENS:
            days.add(DAY_TOKENS[token])
    return days


def is_scheduled_on(recurrence: Optional[str], day: date) -> bool:
    return day.weekday() in scheduled_days(recurrence)


def count_expected_sessions(recurrence: Optional[str], year: int, month: int) -> int:
    days = scheduled_days(recurrence)
    if not days:
        return 0
    days_in_month = calendar.monthrange(year, month)[1]
    return sum(
        1 for d in range(1, days_in_month + 1) if date(year, month, d).weekday() in days
    )


def month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def monthly_sessions(
    explicit: Iterable[Session],
    implicit: Iterable[Session],
    marked: Iterable[Session] = (),
    limit: int = 12,
) -> List[Tuple[str, int]]:
    """
    Conducted session counts per month, newest month first.

    ``explicit`` are (batch_id, date) pairs a teacher marked as conducted.
    ``implicit`` are pairs with student attendance; they only count when the
    teacher left no mark at all for that pair (``marked`` holds every pair
    with a teacher mark, conducted or not).
    """
    marked_set = {(str(b), d) for b, d in marked}
    sessions = {(str(b), d) for b, d in explicit}
    for batch_id, day in implicit:
        key = (str(batch_id), day)
        if key not in marked_set:
            sessions.add(key)

    per_month: Dict[str, int] = defaultdict(int)
    for _, day in sessions:
        per_month[month_key(day)] += 1
    return sorted(per_month.items(), key=lambda kv: kv[0], reverse=True)[:limit]


def project_payout(
    payout_type: Optional[str],
    rate,
    active_students: int = 0,
    sessions: int = 0,
) -> Tuple[float, str]:
    rate = float(rate or 0)
    if payout_type == "fixed":
        return rate, PAYOUT_BASIS_FIXED
    if payout_type == "per_student_monthly":
        return active_students * rate, f"{active_students} students × ₹{_fmt(rate)}"
    if payout_type == "per_class":
        return sessions * rate, f"{sessions} classes × ₹{_fmt(rate)}"
    return 0.0, ""


def _fmt(value: float) -> str:
    # 500.0 -> "500", 512.5 -> "512.5"
    return format(Decimal(str(value)).normalize(), "f")
