"""Google OAuth 2.0 authorization-code flow."""
import logging
from datetime import datetime
from typing import Any, Dict
from urllib.parse import urlencode

import httpx
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.auth import LoginHistory, RoleGrant, User
from app.models.users import UserRole

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"

LOGIN_METHOD = "google_oauth"


class OAuthError(Exception):
    pass


def build_authorization_url(state: str) -> str:
    if not settings.GOOGLE_CLIENT_ID:
        raise OAuthError("Google OAuth is not configured")
    params = {
        "client_id": settings.GOOGLE_CLIENT_ID,
        "redirect_uri": settings.GOOGLE_CALLBACK_URL,
        "response_type": "code",
        "scope": "openid profile email",
        "prompt": "select_account",
        "state": state,
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


def fetch_google_profile(code: str) -> Dict[str, Any]:
    """Exchange an authorization code and return the OpenID userinfo claims."""
    try:
        with httpx.Client(timeout=10.0) as client:
            token_res = client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "code": code,
                    "client_id": settings.GOOGLE_CLIENT_ID,
                    "client_secret": settings.GOOGLE_CLIENT_SECRET,
                    "redirect_uri": settings.GOOGLE_CALLBACK_URL,
                    "grant_type": "authorization_code",
                },
            )
            token_res.raise_for_status()
            access_token = token_res.json().get("access_token")
            if not access_token:
                raise OAuthError("No access token in Google response")
            info_res = client.get(
                GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            info_res.raise_for_status()
            profile = info_res.json()
    except httpx.HTTPError as e:
        raise OAuthError(f"Google token exchange failed: {e}") from e

    if not profile.get("sub") or not profile.get("email"):
        raise OAuthError("Google profile is missing id or email")
    return profile


def upsert_google_user(db: Session, profile: Dict[str, Any]) -> User:
    """
    Find or create the user for a Google profile and record the login.

    New accounts get the ``parent`` role.
    """
    google_id = profile["sub"]
    user = db.query(User).filter(User.google_id == google_id).first()
    if not user:
        # An admin may have pre-created the account by email (setup_admin.py)
        user = (
            db.query(User)
            .filter(User.email == profile["email"], User.google_id.is_(None))
            .first()
        )

    now = datetime.utcnow()
    if user:
        user.google_id = google_id
        user.name = profile.get("name") or user.name
        user.profile_picture = profile.get("picture")
        user.email_verified = bool(profile.get("email_verified"))
        user.last_login = now
    else:
        user = User(
            google_id=google_id,
            email=profile["email"],
            name=profile.get("name"),
            profile_picture=profile.get("picture"),
            email_verified=bool(profile.get("email_verified")),
            last_login=now,
            is_active=True,
        )
        db.add(user)
        db.flush()
        db.add(RoleGrant(user_id=user.id, role=UserRole.parent))
        logger.info(f"Created user {user.email} with default parent role")

    db.add(LoginHistory(user_id=user.id, login_method=LOGIN_METHOD, success=True))
    db.commit()
    db.refresh(user)
    return user


def record_failed_login(db: Session, reason: str) -> None:
    db.rollback()
    db.add(
        LoginHistory(
            user_id=None, login_method=LOGIN_METHOD, success=False, failure_reason=reason
        )
    )
    db.commit()
