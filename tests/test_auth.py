from datetime import datetime, timedelta

from app.core import security
from app.core.config import settings
from app.models.auth import LoginHistory, RefreshToken, RoleGrant, User
from app.services import oauth, tokens
from tests.conftest import auth_header, make_user


def test_profile_requires_token(client):
    response = client.get("/api/auth/profile")
    assert response.status_code == 401
    assert response.json()["detail"] == "Authentication required"


def test_invalid_and_expired_tokens(client, admin):
    response = client.get("/api/auth/profile", headers={"Authorization": "Bearer nonsense"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid token"

    expired = security.create_access_token(
        admin.id, admin.email, ["admin"], expires_delta=timedelta(seconds=-5)
    )
    response = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Token expired"


def test_auth_config_reports_bypass_off(client):
    response = client.get("/api/auth/config")
    assert response.status_code == 200
    assert response.json()["authDisabled"] is False
    assert response.json()["user"] is None


def test_teacher_profile_includes_teacher_link(client, teacher_headers, teacher):
    response = client.get("/api/auth/profile", headers=teacher_headers)
    assert response.status_code == 200
    user = response.json()["user"]
    assert user["roles"] == ["teacher"]
    assert user["teacherProfile"]["teacher_id"] == str(teacher.id)


def test_parent_profile_lists_linked_students(client, parent_headers, student):
    response = client.get("/api/auth/profile", headers=parent_headers)
    linked = response.json()["user"]["linkedStudents"]
    assert linked == [
        {"student_id": str(student.id), "student_name": "Asha Rao", "relationship": "mother"}
    ]


def test_roles_are_read_from_database(client, db, admin, admin_headers):
    assert client.get("/api/users/", headers=admin_headers).status_code == 200

    grant = db.query(RoleGrant).filter(RoleGrant.user_id == admin.id).first()
    grant.revoked_at = datetime.utcnow()
    db.commit()

    # Token still claims admin, but the grant is gone
    response = client.get("/api/users/", headers=admin_headers)
    assert response.status_code == 403


def test_inactive_user_is_rejected(client, db, admin, admin_headers):
    admin.is_active = False
    db.commit()
    response = client.get("/api/auth/profile", headers=admin_headers)
    assert response.status_code == 401


def test_refresh_rotates_token(client, db, admin):
    _, refresh = tokens.issue_tokens(db, admin)
    db.commit()
    old_token = refresh.token

    response = client.post("/api/auth/refresh", json={"refresh_token": old_token})
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Token refreshed successfully"
    assert security.decode_access_token(body["accessToken"])["sub"] == str(admin.id)
    new_token = response.cookies.get(settings.REFRESH_COOKIE_NAME)
    assert new_token and new_token != old_token

    db.expire_all()
    old = db.query(RefreshToken).filter(RefreshToken.token == old_token).one()
    new = db.query(RefreshToken).filter(RefreshToken.token == new_token).one()
    assert old.revoked_at is not None
    assert old.revoked_reason == "rotated"
    assert old.replaced_by == new.id

    # The old token can never be used again
    client.cookies.clear()
    response = client.post("/api/auth/refresh", json={"refresh_token": old_token})
    assert response.status_code == 401


def test_refresh_rejects_missing_and_expired(client, db, admin):
    assert client.post("/api/auth/refresh").status_code == 401

    expired = RefreshToken(
        user_id=admin.id,
        token="expired-token",
        expires_at=datetime.utcnow() - timedelta(days=1),
    )
    db.add(expired)
    db.commit()
    response = client.post("/api/auth/refresh", json={"refresh_token": "expired-token"})
    assert response.status_code == 401


def test_logout_revokes_refresh_token(client, db, admin, admin_headers):
    _, refresh = tokens.issue_tokens(db, admin)
    db.commit()

    response = client.post(
        "/api/auth/logout", headers=admin_headers, json={"refresh_token": refresh.token}
    )
    assert response.status_code == 200
    assert response.json()["success"] is True

    db.expire_all()
    record = db.query(RefreshToken).filter(RefreshToken.token == refresh.token).one()
    assert record.revoked_reason == "user_logout"
    client.cookies.clear()
    assert client.post("/api/auth/refresh", json={"refresh_token": refresh.token}).status_code == 401


def test_google_login_without_client_id_redirects_to_login(client, monkeypatch):
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", None)
    response = client.get("/api/auth/google", follow_redirects=False)
    assert response.status_code in (302, 307)
    assert response.headers["location"].endswith("/login?error=oauth_not_configured")


def test_google_callback_issues_tokens(client, db, monkeypatch):
    monkeypatch.setattr(
        oauth,
        "fetch_google_profile",
        lambda code: {"sub": "g-123", "email": "new@hsm.test", "name": "New Parent"},
    )
    client.cookies.set("oauth_state", "state-1")
    response = client.get(
        "/api/auth/google/callback",
        params={"code": "abc", "state": "state-1"},
        follow_redirects=False,
    )
    assert response.status_code in (302, 307)
    assert "?token=" in response.headers["location"]
    assert response.cookies.get(settings.REFRESH_COOKIE_NAME)

    user = db.query(User).filter(User.email == "new@hsm.test").one()
    assert user.active_roles == ["parent"]


def test_google_callback_state_mismatch_is_logged(client, db):
    client.cookies.set("oauth_state", "expected")
    response = client.get(
        "/api/auth/google/callback",
        params={"code": "abc", "state": "forged"},
        follow_redirects=False,
    )
    assert response.headers["location"].endswith("/login?error=auth_failed")
    failure = db.query(LoginHistory).filter(LoginHistory.success.is_(False)).one()
    assert failure.failure_reason == "state mismatch"


def test_upsert_links_precreated_account(db):
    existing = make_user(db, "owner@hsm.test", roles=["admin"])
    user = oauth.upsert_google_user(
        db, {"sub": "g-owner", "email": "owner@hsm.test", "name": "Owner", "email_verified": True}
    )
    assert user.id == existing.id
    assert user.google_id == "g-owner"
    assert user.active_roles == ["admin"]
    assert user.last_login is not None


def test_admin_can_link_teacher_account(client, db, admin_headers, teacher):
    user = make_user(db, "new.teacher@hsm.test")
    response = client.post(
        "/api/auth/link/teacher",
        headers=admin_headers,
        json={"user_id": str(user.id), "teacher_id": str(teacher.id)},
    )
    assert response.status_code == 200
    db.expire_all()
    assert "teacher" in db.get(User, user.id).active_roles
    assert client.get("/api/auth/profile", headers=auth_header(user)).json()["user"][
        "teacherProfile"
    ]["teacher_id"] == str(teacher.id)
