from datetime import datetime, timezone

import pytest

from app.models.academics import AttendanceStatus
from app.services import credits


@pytest.mark.parametrize(
    "freq,expected",
    [
        ("monthly", 8),
        ("Quarterly", 24),
        ("half-yearly", 48),
        ("Half Yearly", 48),
        ("halfyearly", 48),
        ("yearly", 96),
        ("weekly", 0),
        (None, 0),
    ],
)
def test_credits_for_frequency(freq, expected):
    assert credits.credits_for_frequency(freq) == expected


@pytest.mark.parametrize(
    "freq,expected",
    [("monthly", 8), ("Quarterly", 24), ("half_yearly", 0), ("yearly", 0), (None, 0)],
)
def test_initial_batch_credits_seeds_monthly_and_quarterly_only(freq, expected):
    assert credits.initial_batch_credits(freq) == expected


def test_total_credits_counts_one_plan_per_instrument():
    selections = [
        {"instrument_id": "guitar", "batch_id": "b1", "payment_frequency": "monthly"},
        {"instrument_id": "guitar", "batch_id": "b2", "payment_frequency": "monthly"},
        {"instrument_id": "piano", "batch_id": "b3", "payment_frequency": "quarterly"},
    ]
    assert credits.total_credits_for_batches(selections) == 8 + 24


def test_total_credits_falls_back_to_batch_key():
    selections = [
        {"batch_id": "b1", "payment_frequency": "monthly"},
        {"batch_id": "b2", "payment_frequency": "monthly"},
        {"payment_frequency": "yearly"},
    ]
    assert credits.total_credits_for_batches(selections) == 16


def test_remaining_credits_charges_absences():
    assert credits.remaining_credits(24, present=5, absent=2) == 17


def test_remaining_credits_without_total_sums_batches():
    assert credits.remaining_credits(None, 5, 2, [3, None, -1]) == 2


@pytest.mark.parametrize(
    "old,new,delta",
    [
        (None, "present", -1),
        (None, "absent", 0),
        ("absent", "present", -1),
        ("present", "absent", 1),
        ("present", "excused", 1),
        ("present", "present", 0),
        (AttendanceStatus.present, "absent", 1),
    ],
)
def test_attendance_credit_delta(old, new, delta):
    assert credits.attendance_credit_delta(old, new) == delta


def test_infer_payment_frequency_prefers_metadata():
    assert credits.infer_payment_frequency({"payment_frequency": "Quarterly"}, "Monthly") == "quarterly"
    assert credits.infer_payment_frequency({}, "Guitar Monthly") == "monthly"
    assert credits.infer_payment_frequency(None, "Annual plan") == "yearly"
    assert credits.infer_payment_frequency(None, None) is None


def test_next_payment_date_clamps_month_end():
    assert credits.next_payment_date(datetime(2026, 1, 31), "monthly") == datetime(2026, 2, 28)
    assert credits.next_payment_date(datetime(2026, 11, 15), "quarterly") == datetime(2027, 2, 15)
    assert credits.next_payment_date(datetime(2026, 1, 31), None) is None
    assert credits.next_payment_date(None, "monthly") is None


def test_is_overdue_handles_aware_and_naive():
    due = datetime(2026, 3, 1, tzinfo=timezone.utc)
    assert credits.is_overdue(due, now=datetime(2026, 3, 2))
    assert not credits.is_overdue(due, now=datetime(2026, 2, 28))
    assert not credits.is_overdue(None)
