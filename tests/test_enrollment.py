import pytest

from app.models.academics import Enrollment, EnrollmentBatch
from app.models.finance import Package, Payment
from app.models.users import Student
from tests.conftest import make_batch


@pytest.fixture
def catalogue(db, guitar, batch):
    db.add_all(
        [
            Package(instrument_id=guitar.id, name="Guitar Monthly", classes_count=8, price=3000),
            Package(instrument_id=guitar.id, name="Guitar Quarterly", classes_count=24, price=8500),
        ]
    )
    db.commit()
    return batch


def _answers(**overrides):
    answers = {
        "firstName": "Meera",
        "lastName": " Iyer ",
        "email": "meera@example.com",
        "dob": "2012-04-09",
        "address": "4 Lake View",
        "guardianName": "Suresh Iyer",
        "telephone": "+91 98765 43210",
        "dateOfJoining": "2026-06-01",
        "streams": [{"instrument": "guitar", "batch": "MON 17:00", "payment": "Monthly"}],
    }
    answers.update(overrides)
    return {"answers": answers}


def test_enroll_creates_student_links_and_pending_payment(client, db, catalogue):
    response = client.post("/api/enroll", json=_answers())
    assert response.status_code == 201
    body = response.json()
    assert body["ok"] is True
    assert body["message"] == "Enrollment successful"

    student = db.query(Student).one()
    assert str(student.id) == body["studentId"]
    assert student.name == "Meera Iyer"
    assert student.meta["total_credits"] == 8

    enrollment = db.query(Enrollment).one()
    assert enrollment.classes_remaining == 8
    link = db.query(EnrollmentBatch).one()
    assert link.batch_id == catalogue.id
    assert link.classes_remaining == 8
    assert link.payment_frequency == "Monthly"

    payment = db.query(Payment).one()
    assert payment.method == "pending"
    assert float(payment.amount) == 3000


def test_enroll_multiple_streams_sums_packages(client, db, catalogue, guitar, teacher):
    make_batch(db, guitar, teacher, recurrence="SAT 10:00-11:00")
    streams = [
        {"instrument": "Guitar", "batch": "MON", "payment": "Monthly"},
        {"instrument": "Guit", "batch": "SAT", "payment": "Quarterly"},
    ]
    response = client.post("/api/enroll", json=_answers(streams=streams))
    assert response.status_code == 201
    assert db.query(Student).one().meta["total_credits"] == 32
    assert db.query(EnrollmentBatch).count() == 2
    assert db.query(Payment).count() == 2


@pytest.mark.parametrize(
    "overrides,detail",
    [
        ({"firstName": ""}, "missing required fields"),
        ({"streams": []}, "missing required fields"),
        ({"email": "not-an-email"}, "invalid email"),
        ({"telephone": "call me"}, "invalid telephone number"),
        ({"streams": [None]}, "invalid stream object"),
        ({"streams": [{"instrument": "Guitar", "batch": "", "payment": "Monthly"}]}, "invalid batch"),
        ({"streams": [{"instrument": "Guitar", "batch": "MON", "payment": "Weekly"}]}, "invalid payment option"),
    ],
)
def test_enroll_validation(client, db, catalogue, overrides, detail):
    response = client.post("/api/enroll", json=_answers(**overrides))
    assert response.status_code == 422
    assert response.json()["detail"] == detail
    assert db.query(Student).count() == 0


def test_enroll_unknown_catalogue_entries_roll_back(client, db, catalogue):
    streams = [{"instrument": "Sitar", "batch": "MON", "payment": "Monthly"}]
    response = client.post("/api/enroll", json=_answers(streams=streams))
    assert response.status_code == 400
    assert response.json()["detail"] == "Instrument not found: Sitar"

    streams = [{"instrument": "Guitar", "batch": "WED", "payment": "Monthly"}]
    response = client.post("/api/enroll", json=_answers(streams=streams))
    assert response.status_code == 400
    assert response.json()["detail"].startswith("Batch not found for Guitar")

    db.expire_all()
    assert db.query(Student).count() == 0
    assert db.query(Enrollment).count() == 0


def test_list_enrollments(client, db, admin_headers, catalogue):
    client.post("/api/enroll", json=_answers())
    response = client.get("/api/enrollments", headers=admin_headers)
    assert response.status_code == 200
    rows = response.json()["enrollments"]
    assert len(rows) == 1
    assert rows[0]["name"] == "Meera Iyer"
    assert rows[0]["batches"][0]["instrument"] == "Guitar"
    assert rows[0]["batches"][0]["teacher"] == "Ravi"


def test_list_enrollments_requires_admin(client, teacher_headers):
    assert client.get("/api/enrollments", headers=teacher_headers).status_code == 403
