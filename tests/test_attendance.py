from datetime import date, timedelta

from app.models.academics import AttendanceRecord, EnrollmentBatch
from tests.conftest import enroll, make_batch


def _mark(batch, student, status, day=None):
    return {
        "batch_id": str(batch.id),
        "student_id": str(student.id),
        "date": (day or date.today()).isoformat(),
        "status": status,
    }


def _balance(db, link):
    db.expire_all()
    return db.get(EnrollmentBatch, link.id).classes_remaining


def test_present_consumes_a_credit(client, db, teacher_headers, batch, student):
    link = enroll(db, student, batch, classes_remaining=8)
    response = client.post(
        "/api/attendance/", headers=teacher_headers, json={"records": [_mark(batch, student, "present")]}
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Attendance saved successfully"
    assert _balance(db, link) == 7


def test_remarking_moves_credit_back(client, db, admin_headers, batch, student):
    link = enroll(db, student, batch, classes_remaining=8)
    url = "/api/attendance/"

    client.post(url, headers=admin_headers, json={"records": [_mark(batch, student, "present")]})
    client.post(url, headers=admin_headers, json={"records": [_mark(batch, student, "present")]})
    assert _balance(db, link) == 7

    client.post(url, headers=admin_headers, json={"records": [_mark(batch, student, "absent")]})
    assert _balance(db, link) == 8
    assert db.query(AttendanceRecord).count() == 1
    assert db.query(AttendanceRecord).one().status.value == "absent"


def test_balance_may_go_negative(client, db, admin_headers, batch, student):
    link = enroll(db, student, batch, classes_remaining=0)
    client.post(
        "/api/attendance/", headers=admin_headers, json={"records": [_mark(batch, student, "present")]}
    )
    assert _balance(db, link) == -1


def test_teacher_cannot_mark_other_batches(client, db, teacher_headers, guitar, student):
    foreign = make_batch(db, guitar, None, recurrence="WED 10:00-11:00")
    enroll(db, student, foreign)
    response = client.post(
        "/api/attendance/", headers=teacher_headers, json={"records": [_mark(foreign, student, "present")]}
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "You do not have permission to access this batch"


def test_teacher_is_limited_to_today(client, db, teacher_headers, batch, student):
    enroll(db, student, batch)
    yesterday = date.today() - timedelta(days=1)
    response = client.post(
        "/api/attendance/",
        headers=teacher_headers,
        json={"records": [_mark(batch, student, "present", day=yesterday)]},
    )
    assert response.status_code == 403
    assert "only mark attendance for today" in response.json()["detail"]
    assert db.query(AttendanceRecord).count() == 0


def test_admin_may_backfill(client, db, admin_headers, batch, student):
    link = enroll(db, student, batch, classes_remaining=8)
    response = client.post(
        "/api/attendance/",
        headers=admin_headers,
        json={"records": [_mark(batch, student, "present", day=date(2026, 1, 5))]},
    )
    assert response.status_code == 200
    assert _balance(db, link) == 7


def test_invalid_status_rejects_whole_request(client, db, admin_headers, batch, student):
    link = enroll(db, student, batch, classes_remaining=8)
    response = client.post(
        "/api/attendance/",
        headers=admin_headers,
        json={"records": [_mark(batch, student, "present"), _mark(batch, student, "late")]},
    )
    assert response.status_code == 400
    assert db.query(AttendanceRecord).count() == 0
    assert _balance(db, link) == 8


def test_parent_cannot_mark(client, parent_headers, batch, student):
    response = client.post(
        "/api/attendance/", headers=parent_headers, json={"records": [_mark(batch, student, "present")]}
    )
    assert response.status_code == 403


def test_list_attendance_filters(client, db, admin_headers, batch, student):
    enroll(db, student, batch)
    client.post(
        "/api/attendance/",
        headers=admin_headers,
        json={
            "records": [
                _mark(batch, student, "present", day=date(2026, 3, 2)),
                _mark(batch, student, "absent", day=date(2026, 3, 5)),
            ]
        },
    )
    response = client.get(
        "/api/attendance/",
        headers=admin_headers,
        params={"batch_id": str(batch.id), "start_date": "2026-03-03"},
    )
    records = response.json()["attendance"]
    assert len(records) == 1
    assert records[0]["status"] == "absent"
    assert records[0]["student_name"] == "Asha Rao"


def test_batch_students_with_marks(client, db, teacher_headers, batch, student):
    enroll(db, student, batch, classes_remaining=5)
    client.post(
        "/api/attendance/", headers=teacher_headers, json={"records": [_mark(batch, student, "present")]}
    )
    response = client.get(
        f"/api/batches/{batch.id}/students",
        headers=teacher_headers,
        params={"date": date.today().isoformat()},
    )
    assert response.status_code == 200
    students = response.json()["students"]
    assert students[0]["attendance_status"] == "present"
    assert students[0]["classes_remaining"] == 4
