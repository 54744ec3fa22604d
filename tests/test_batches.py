from datetime import date

from app.models.academics import AttendanceRecord, AttendanceStatus, Batch
from app.models.users import Student
from tests.conftest import enroll, make_batch


def test_instruments_are_public(client, guitar):
    response = client.get("/api/instruments")
    assert response.status_code == 200
    assert [i["name"] for i in response.json()["instruments"]] == ["Guitar"]


def test_list_batches_counts_active_students(client, db, batch, student):
    enroll(db, student, batch)
    inactive = Student(name="Gone", student_type="permanent")
    db.add(inactive)
    db.commit()
    link = enroll(db, inactive, batch)
    link.enrollment.status = "completed"
    db.commit()

    makeup = make_batch(db, batch.instrument, None, recurrence="SUN 09:00-10:00")
    makeup.is_makeup = True
    db.commit()

    response = client.get("/api/batches")
    batches = response.json()["batches"]
    assert len(batches) == 1
    assert batches[0]["student_count"] == 1
    assert batches[0]["teacher_name"] == "Ravi"


def test_batches_by_instrument_validates_id(client, guitar, batch):
    assert client.get("/api/batches/not-a-uuid").status_code == 400
    assert client.get("/api/batches/not-a-uuid").json()["detail"] == "Invalid instrumentId parameter"
    response = client.get(f"/api/batches/{guitar.id}")
    assert [b["id"] for b in response.json()["batches"]] == [str(batch.id)]


def test_create_and_update_batch(client, admin_headers, guitar, teacher):
    response = client.post(
        "/api/batches",
        headers=admin_headers,
        json={
            "instrument_id": str(guitar.id),
            "teacher_id": str(teacher.id),
            "recurrence": "FRI 18:00-19:00",
            "start_time": "18:00",
            "end_time": "19:00",
        },
    )
    assert response.status_code == 201
    created = response.json()["batch"]
    assert created["capacity"] == 8

    response = client.put(
        f"/api/batches/{created['id']}",
        headers=admin_headers,
        json={"recurrence": "FRI 19:00-20:00", "start_time": "19:00", "end_time": "20:00", "capacity": 6},
    )
    assert response.json()["batch"]["capacity"] == 6
    assert response.json()["batch"]["teacher_id"] is None


def test_delete_batch_in_use_is_rejected(client, db, admin_headers, batch, student, guitar):
    db.add(
        AttendanceRecord(
            batch_id=batch.id, student_id=student.id, session_date=date(2026, 6, 1), status=AttendanceStatus.present
        )
    )
    db.commit()
    response = client.delete(f"/api/batches/{batch.id}", headers=admin_headers)
    assert response.status_code == 400

    spare = make_batch(db, guitar, None, recurrence="SUN 11:00-12:00")
    response = client.delete(f"/api/batches/{spare.id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["batch"]["id"] == str(spare.id)
    assert db.query(Batch).count() == 1


def test_batch_students_requires_ownership(client, db, teacher_headers, guitar):
    foreign = make_batch(db, guitar, None)
    response = client.get(f"/api/batches/{foreign.id}/students", headers=teacher_headers)
    assert response.status_code == 403
