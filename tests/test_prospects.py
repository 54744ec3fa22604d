import app.api.v1.prospects as prospects_api
from app.models.communication import Notification
from app.models.users import Student


def _book(client, **overrides):
    payload = {
        "name": "Nisha",
        "email": "nisha@example.com",
        "phone": "+91 99999 11111",
        "instrument": "Piano",
        "source": "landing_page",
    }
    payload.update(overrides)
    return client.post("/api/prospects/", json=payload)


def test_demo_booking_creates_prospect_and_notification(client, db, monkeypatch):
    sent = []
    monkeypatch.setattr(prospects_api, "send_demo_booking_email", lambda *args: sent.append(args))

    response = _book(client)
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Demo class booked successfully!"
    assert body["prospect"]["student_type"] == "prospect"
    assert body["prospect"]["metadata"]["status"] == "new"
    assert body["prospect"]["metadata"]["interested_instrument"] == "Piano"

    notification = db.query(Notification).one()
    assert notification.type == "NEW_PROSPECT"
    assert notification.user_id is None
    assert notification.action_link == "/prospects"
    assert sent == [("Nisha", "nisha@example.com", "+91 99999 11111", "Piano", "landing_page")]


def test_demo_booking_requires_contact_details(client, db):
    response = _book(client, phone="")
    assert response.status_code == 400
    assert response.json()["detail"] == "Name, email, and phone are required for a trial booking."
    assert db.query(Student).count() == 0


def test_prospect_pipeline(client, db, admin_headers, monkeypatch):
    monkeypatch.setattr(prospects_api, "send_demo_booking_email", lambda *args: None)
    prospect_id = _book(client).json()["prospect"]["id"]

    listing = client.get("/api/prospects/", headers=admin_headers).json()["prospects"]
    assert [p["id"] for p in listing] == [prospect_id]

    response = client.put(
        f"/api/prospects/{prospect_id}", headers=admin_headers, json={"status": "contacted"}
    )
    assert response.json()["prospect"]["metadata"]["status"] == "contacted"
    assert response.json()["prospect"]["metadata"]["email"] == "nisha@example.com"

    response = client.post(
        f"/api/prospects/{prospect_id}/notes", headers=admin_headers, json={"note": "Called, wants Saturday"}
    )
    assert response.status_code == 201
    assert response.json()["note"]["created_by"] == "Admin"
    notes = client.get(f"/api/prospects/{prospect_id}/notes", headers=admin_headers).json()["notes"]
    assert [n["note"] for n in notes] == ["Called, wants Saturday"]

    client.put(f"/api/prospects/{prospect_id}", headers=admin_headers, json={"is_active": False})
    assert client.get("/api/prospects/", headers=admin_headers).json()["prospects"] == []


def test_prospect_routes_ignore_permanent_students(client, admin_headers, student):
    response = client.get(f"/api/prospects/{student.id}/notes", headers=admin_headers)
    assert response.status_code == 404
