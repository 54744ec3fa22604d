import asyncio
import json

from app.core import security
from app.core.database import get_db
from app.main import app
from app.models.communication import Notification
from app.services.notifier import CONNECTED_EVENT, KEEPALIVE_COMMENT, NotificationBroker, format_event
from tests.conftest import TestingSessionLocal, make_user


def _open_stream(query_string):
    """Drive the stream route over ASGI, keep the first event, then disconnect."""
    sessions = {"opened": 0, "closed": 0}

    def counting_get_db():
        sessions["opened"] += 1
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()
            sessions["closed"] += 1

    async def scenario():
        disconnected = asyncio.Event()
        request_sent = False
        seen = {"status": None, "first_event": None, "sessions_while_open": None}

        async def receive():
            nonlocal request_sent
            if not request_sent:
                request_sent = True
                return {"type": "http.request", "body": b"", "more_body": False}
            await disconnected.wait()
            return {"type": "http.disconnect"}

        async def send(message):
            if message["type"] == "http.response.start":
                seen["status"] = message["status"]
            elif message["type"] == "http.response.body" and message.get("body"):
                if seen["first_event"] is None:
                    seen["first_event"] = message["body"].decode()
                    seen["sessions_while_open"] = dict(sessions)
                    disconnected.set()

        scope = {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": "GET",
            "scheme": "http",
            "path": "/api/notifications/stream",
            "raw_path": b"/api/notifications/stream",
            "root_path": "",
            "query_string": query_string.encode(),
            "headers": [(b"host", b"testserver")],
            "client": ("testclient", 50000),
            "server": ("testserver", 80),
        }
        await asyncio.wait_for(app(scope, receive, send), timeout=5)
        return seen

    app.dependency_overrides[get_db] = counting_get_db
    try:
        seen = asyncio.run(scenario())
    finally:
        app.dependency_overrides.clear()
    return seen, sessions


def test_format_event():
    assert format_event({"type": "X"}) == 'data: {"type": "X"}\n\n'


def test_broker_fans_out_to_every_subscriber():
    async def scenario():
        broker = NotificationBroker()
        first, second = broker.subscribe(), broker.subscribe()
        delivered = broker.publish({"type": "PAYMENT", "title": "Paid"})
        messages = [await asyncio.wait_for(q.get(), timeout=1) for q in (first, second)]
        broker.unsubscribe(first)
        return delivered, messages, broker.subscriber_count

    delivered, messages, remaining = asyncio.run(scenario())
    assert delivered == 2
    assert all(json.loads(m[len("data: "):])["type"] == "PAYMENT" for m in messages)
    assert remaining == 1


def test_stream_sends_connected_keepalive_and_events():
    async def scenario():
        broker = NotificationBroker()
        queue = broker.subscribe()
        stream = broker.stream(0.01, queue=queue)
        chunks = [await stream.__anext__(), await stream.__anext__()]
        broker.publish({"type": "NEW_PROSPECT"})
        chunks.append(await stream.__anext__())
        await stream.aclose()
        return chunks, broker.subscriber_count

    chunks, remaining = asyncio.run(scenario())
    assert chunks[0] == CONNECTED_EVENT
    assert chunks[1] == KEEPALIVE_COMMENT
    assert json.loads(chunks[2][len("data: "):]) == {"type": "NEW_PROSPECT"}
    assert remaining == 0


def test_list_shows_global_and_own(client, db, admin, admin_headers):
    other = make_user(db, "other@hsm.test", roles=["admin"])
    db.add_all(
        [
            Notification(type="A", title="Global", message="for all"),
            Notification(type="B", title="Mine", message="for me", user_id=admin.id),
            Notification(type="C", title="Theirs", message="not mine", user_id=other.id),
        ]
    )
    db.commit()

    titles = {n["title"] for n in client.get("/api/notifications/", headers=admin_headers).json()["notifications"]}
    assert titles == {"Global", "Mine"}
    assert client.get("/api/notifications/unread/count", headers=admin_headers).json() == {"count": 2}

    assert client.put("/api/notifications/read-all", headers=admin_headers).json() == {"success": True}
    assert client.get("/api/notifications/unread/count", headers=admin_headers).json() == {"count": 0}

    db.expire_all()
    theirs = db.query(Notification).filter(Notification.title == "Theirs").one()
    assert theirs.is_read is False


def test_create_and_mark_read(client, admin_headers):
    response = client.post(
        "/api/notifications/",
        headers=admin_headers,
        json={"type": "PAYMENT_RECEIVED", "title": "Payment", "message": "Rs 3000", "metadata": {"amount": 3000}},
    )
    assert response.status_code == 201
    notification = response.json()["notification"]
    assert notification["is_read"] is False
    assert notification["metadata"] == {"amount": 3000}

    response = client.put(f"/api/notifications/{notification['id']}/read", headers=admin_headers)
    assert response.json()["notification"]["is_read"] is True

    missing = client.put(
        "/api/notifications/00000000-0000-0000-0000-000000000000/read", headers=admin_headers
    )
    assert missing.status_code == 404


def test_stream_requires_authentication(client):
    assert client.get("/api/notifications/stream").status_code == 401


def test_stream_accepts_query_token_and_sends_connected_first(db, admin):
    token = security.create_access_token(admin.id, admin.email, admin.active_roles)
    seen, _ = _open_stream(f"token={token}")
    assert seen["status"] == 200
    assert seen["first_event"] == CONNECTED_EVENT


def test_stream_releases_db_session_while_open(db, admin):
    token = security.create_access_token(admin.id, admin.email, admin.active_roles)
    seen, sessions = _open_stream(f"token={token}")
    assert seen["sessions_while_open"] == {"opened": 1, "closed": 1}
    assert sessions == {"opened": 1, "closed": 1}


def test_broker_sends_personal_notifications_only_to_their_user():
    async def scenario():
        broker = NotificationBroker()
        mine, theirs, anonymous = broker.subscribe("u-1"), broker.subscribe("u-2"), broker.subscribe()
        delivered = broker.publish({"type": "PAYMENT", "user_id": "u-1"})
        broadcast = broker.publish({"type": "NEW_PROSPECT", "user_id": None})
        await asyncio.sleep(0.01)
        return delivered, broadcast, [q.qsize() for q in (mine, theirs, anonymous)]

    delivered, broadcast, sizes = asyncio.run(scenario())
    assert delivered == 1
    assert broadcast == 3
    assert sizes == [2, 1, 1]


def test_cannot_mark_another_users_notification_read(client, db, admin_headers):
    other = make_user(db, "other@hsm.test", roles=["admin"])
    theirs = Notification(type="C", title="Theirs", message="not mine", user_id=other.id)
    db.add(theirs)
    db.commit()

    response = client.put(f"/api/notifications/{theirs.id}/read", headers=admin_headers)
    assert response.status_code == 404

    db.expire_all()
    assert db.get(Notification, theirs.id).is_read is False
