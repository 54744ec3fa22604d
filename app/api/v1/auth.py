import logging
from typing import Any, Optional
from fastapi import APIRouter, Body, Depends, Request, Response
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from app.api import deps
from app.core import security
from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import NotFoundError
from app.models.auth import StudentGuardian, TeacherUser, User
from app.models.users import Student, Teacher
from app.schemas.auth import (
    AccessTokenResponse,
    CurrentUser,
    LinkStudentRequest,
    LinkTeacherRequest,
    RefreshTokenRequest,
)
from app.services import accounts, oauth, tokens

logger = logging.getLogger(__name__)

router = APIRouter()

OAUTH_STATE_COOKIE = "oauth_state"


def _set_refresh_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 3600,
    )


@router.get("/config")
def get_auth_config(
    current_user: Optional[CurrentUser] = Depends(deps.get_optional_user),
) -> Any:
    """Expose the dev-bypass state so the frontend can skip the login screen."""
    return {
        "authDisabled": settings.auth_disabled,
        "user": current_user.model_dump(mode="json") if current_user else None,
        "profile": settings.DEV_PROFILE,
    }


@router.get("/google")
def google_login() -> Any:
    state = security.generate_oauth_state()
    try:
        url = oauth.build_authorization_url(state)
    except oauth.OAuthError as e:
        logger.error(f"Google login unavailable: {e}")
        return RedirectResponse(f"{settings.FRONTEND_URL}/login?error=oauth_not_configured")
    response = RedirectResponse(url)
    response.set_cookie(
        OAUTH_STATE_COOKIE, state, httponly=True, samesite="lax", max_age=600
    )
    return response


@router.get("/google/callback")
def google_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: Session = Depends(get_db),
) -> Any:
    failure_url = f"{settings.FRONTEND_URL}/login?error="
    expected_state = request.cookies.get(OAUTH_STATE_COOKIE)
    if error or not code:
        oauth.record_failed_login(db, error or "missing authorization code")
        return RedirectResponse(failure_url + "auth_failed")
    if not expected_state or state != expected_state:
        oauth.record_failed_login(db, "state mismatch")
        return RedirectResponse(failure_url + "auth_failed")

    try:
        profile = oauth.fetch_google_profile(code)
        user = oauth.upsert_google_user(db, profile)
    except oauth.OAuthError as e:
        logger.error(f"Google OAuth error: {e}")
        oauth.record_failed_login(db, str(e))
        return RedirectResponse(failure_url + "auth_failed")

    if not user.is_active:
        return RedirectResponse(failure_url + "account_inactive")

    access_token, refresh = tokens.issue_tokens(db, user)
    db.commit()

    response = RedirectResponse(f"{settings.FRONTEND_URL}/?token={access_token}")
    _set_refresh_cookie(response, refresh.token)
    response.delete_cookie(OAUTH_STATE_COOKIE)
    logger.info(f"User {user.email} signed in with Google")
    return response


@router.get("/profile")
def get_profile(
    current_user: CurrentUser = Depends(deps.get_current_user),
    db: Session = Depends(get_db),
) -> Any:
    user = db.query(User).filter(User.id == current_user.id).first()
    if not user:
        if settings.auth_disabled:
            return {"user": current_user.model_dump(mode="json")}
        raise NotFoundError("User")

    profile = {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "google_id": user.google_id,
        "profile_picture": user.profile_picture,
        "is_active": user.is_active,
        "created_at": user.created_at,
        "last_login": user.last_login,
        "roles": user.active_roles,
    }

    if "teacher" in profile["roles"]:
        row = (
            db.query(Teacher)
            .join(TeacherUser, TeacherUser.teacher_id == Teacher.id)
            .filter(TeacherUser.user_id == user.id)
            .first()
        )
        if row:
            profile["teacherProfile"] = {
                "teacher_id": row.id,
                "name": row.name,
                "teacher_email": row.email,
                "phone": row.phone,
            }

    if "parent" in profile["roles"]:
        rows = (
            db.query(StudentGuardian, Student)
            .join(Student, StudentGuardian.student_id == Student.id)
            .filter(StudentGuardian.user_id == user.id)
            .all()
        )
        profile["linkedStudents"] = [
            {
                "student_id": student.id,
                "student_name": student.name,
                "relationship": link.relationship_type,
            }
            for link, student in rows
        ]

    return {"user": profile}


@router.post("/refresh", response_model=AccessTokenResponse)
def refresh_token(
    request: Request,
    response: Response,
    refresh_data: Optional[RefreshTokenRequest] = Body(None),
    db: Session = Depends(get_db),
) -> Any:
    """
    Exchange a refresh token for a new access token.

    The refresh token is rotated: the presented one is revoked and a new one
    is set as the cookie.
    """
    presented = request.cookies.get(settings.REFRESH_COOKIE_NAME) or (
        refresh_data.refresh_token if refresh_data else None
    )
    access_token, new_refresh, _ = tokens.rotate_refresh_token(db, presented)
    _set_refresh_cookie(response, new_refresh)
    return {"accessToken": access_token, "message": "Token refreshed successfully"}


@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    refresh_data: Optional[RefreshTokenRequest] = Body(None),
    current_user: CurrentUser = Depends(deps.get_current_user),
    db: Session = Depends(get_db),
) -> Any:
    presented = request.cookies.get(settings.REFRESH_COOKIE_NAME) or (
        refresh_data.refresh_token if refresh_data else None
    )
    if presented:
        tokens.revoke_refresh_token(db, presented, reason="user_logout")
    response.delete_cookie(settings.REFRESH_COOKIE_NAME)
    logger.info(f"User {current_user.id} logged out")
    return {"message": "Logged out successfully", "success": True}


@router.post("/link/teacher")
def link_teacher_account(
    link_in: LinkTeacherRequest,
    current_user: CurrentUser = Depends(deps.allow_admin),
    db: Session = Depends(get_db),
) -> Any:
    link = accounts.link_teacher(
        db, link_in.user_id, link_in.teacher_id, linked_by=current_user.id
    )
    db.commit()
    return {
        "success": True,
        "message": "Teacher account linked successfully",
        "linkId": link.id,
    }


@router.post("/link/student")
def link_student_account(
    link_in: LinkStudentRequest,
    current_user: CurrentUser = Depends(deps.allow_admin),
    db: Session = Depends(get_db),
) -> Any:
    link = accounts.link_student(
        db,
        link_in.user_id,
        link_in.student_id,
        relationship=link_in.relationship,
        linked_by=current_user.id,
    )
    db.commit()
    return {
        "success": True,
        "message": "Student/guardian account linked successfully",
        "linkId": link.id,
    }
