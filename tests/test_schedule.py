from datetime import date

from app.services import schedule


def test_scheduled_days_reads_leading_tokens():
    assert schedule.scheduled_days("TUE 17:00-18:00, thu 17:00-18:00") == {1, 3}
    assert schedule.scheduled_days("Weekend batch") == set()
    assert schedule.scheduled_days(None) == set()


def test_is_scheduled_on():
    # 2026-06-01 is a Monday
    assert schedule.is_scheduled_on("MON 10:00-11:00", date(2026, 6, 1))
    assert not schedule.is_scheduled_on("MON 10:00-11:00", date(2026, 6, 2))


def test_count_expected_sessions():
    # June 2026 has five Mondays and four Thursdays
    assert schedule.count_expected_sessions("MON 17:00-18:00, THU 17:00-18:00", 2026, 6) == 9
    assert schedule.count_expected_sessions("", 2026, 6) == 0


def test_monthly_sessions_implicit_only_when_unmarked():
    explicit = [("b1", date(2026, 5, 4))]
    marked = [("b1", date(2026, 5, 4)), ("b1", date(2026, 5, 11))]
    implicit = [
        ("b1", date(2026, 5, 4)),
        ("b1", date(2026, 5, 11)),  # marked not conducted
        ("b1", date(2026, 5, 18)),
        ("b2", date(2026, 4, 20)),
    ]
    result = schedule.monthly_sessions(explicit, implicit, marked)
    assert result == [("2026-05", 2), ("2026-04", 1)]


def test_monthly_sessions_limit():
    implicit = [("b", date(2025, m, 1)) for m in range(1, 13)] + [("b", date(2026, 1, 1))]
    result = schedule.monthly_sessions([], implicit, limit=12)
    assert len(result) == 12
    assert result[0][0] == "2026-01"


def test_project_payout():
    assert schedule.project_payout("fixed", 20000) == (20000.0, "Fixed monthly salary")
    amount, basis = schedule.project_payout("per_student_monthly", 500, active_students=6)
    assert amount == 3000
    assert basis == "6 students × ₹500"
    amount, basis = schedule.project_payout("per_class", "512.50", sessions=4)
    assert amount == 2050
    assert basis == "4 classes × ₹512.5"
    assert schedule.project_payout("unknown", 100) == (0.0, "")
