import logging
import uuid
from datetime import date
from typing import Optional, List
from fastapi import Depends, Query
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import ExpiredSignatureError, JWTError
from sqlalchemy.orm import Session

from app.core import security
from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import AccessDenied, AuthenticationError, BadRequestError
from app.models.academics import Batch
from app.models.auth import User, TeacherUser, StudentGuardian
from app.schemas.auth import CurrentUser, TokenPayload

logger = logging.getLogger(__name__)

# Bearer token from the Authorization header
reusable_bearer = HTTPBearer(auto_error=False)

DEV_PRINCIPALS = {
    "admin": CurrentUser(
        id=uuid.UUID("11111111-1111-1111-1111-111111111111"),
        email="admin@local.dev",
        name="Local Admin",
        roles=["admin"],
    ),
    "teacher": CurrentUser(
        id=uuid.UUID("22222222-2222-2222-2222-222222222222"),
        email="teacher@local.dev",
        name="Local Teacher",
        roles=["teacher"],
    ),
    "student": CurrentUser(
        id=uuid.UUID("33333333-3333-3333-3333-333333333333"),
        email="student@local.dev",
        name="Local Student",
        roles=["student"],
    ),
}


def get_dev_principal() -> CurrentUser:
    return DEV_PRINCIPALS.get(settings.DEV_PROFILE, DEV_PRINCIPALS["student"])


def principal_from_token(db: Session, token: str) -> CurrentUser:
    try:
        payload = security.decode_access_token(token)
        token_data = TokenPayload(**payload)
        user_id = uuid.UUID(token_data.sub or "")
    except ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except (JWTError, ValueError):
        raise AuthenticationError("Invalid token")

    if token_data.type not in (None, "access"):
        raise AuthenticationError("Invalid token")

    user = db.query(User).filter(User.id == user_id, User.is_active.is_(True)).first()
    if not user:
        raise AuthenticationError("User not found or inactive")

    # Roles come from the database, not the token, so revocations apply at once
    return CurrentUser(id=user.id, email=user.email, name=user.name, roles=user.active_roles)


def get_current_user(
    db: Session = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(reusable_bearer),
) -> CurrentUser:
    if settings.auth_disabled:
        return get_dev_principal()
    if not credentials or not credentials.credentials:
        raise AuthenticationError("Authentication required")
    return principal_from_token(db, credentials.credentials)


def get_optional_user(
    db: Session = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(reusable_bearer),
) -> Optional[CurrentUser]:
    if settings.auth_disabled:
        return get_dev_principal()
    if not credentials or not credentials.credentials:
        return None
    return principal_from_token(db, credentials.credentials)


def get_stream_user(
    token: Optional[str] = Query(None),
    # Released when the handler returns, not when the stream closes
    db: Session = Depends(get_db, scope="function"),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(reusable_bearer),
) -> CurrentUser:
    """EventSource cannot send headers, so the stream also accepts ``?token=``."""
    if settings.auth_disabled:
        return get_dev_principal()
    raw = credentials.credentials if credentials else token
    if not raw:
        raise AuthenticationError("Authentication required")
    return principal_from_token(db, raw)


class RoleChecker:
    def __init__(self, allowed_roles: List[str]):
        self.allowed_roles = allowed_roles

    def __call__(self, current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not current_user.has_role(*self.allowed_roles):
            raise AccessDenied(
                "This action requires one of the following roles: "
                + ", ".join(self.allowed_roles)
            )
        return current_user


allow_admin = RoleChecker(["admin"])
allow_staff = RoleChecker(["admin", "teacher"])
allow_family = RoleChecker(["admin", "parent"])


def get_teacher_id(db: Session, current_user: CurrentUser) -> Optional[uuid.UUID]:
    link = (
        db.query(TeacherUser)
        .filter(TeacherUser.user_id == current_user.id, TeacherUser.is_active.is_(True))
        .first()
    )
    return link.teacher_id if link else None


def verify_batch_ownership(db: Session, current_user: CurrentUser, batch_id) -> None:
    """Admins may touch any batch; teachers only the batches assigned to them."""
    if current_user.is_admin:
        return
    if not current_user.has_role("teacher"):
        raise AccessDenied("Teacher or admin role required")

    teacher_id = get_teacher_id(db, current_user)
    if teacher_id is None:
        raise AccessDenied("Teacher account not linked")

    owned = (
        db.query(Batch.id)
        .filter(Batch.id == batch_id, Batch.teacher_id == teacher_id)
        .first()
    )
    if not owned:
        logger.warning(f"User {current_user.id} denied access to batch {batch_id}")
        raise AccessDenied("You do not have permission to access this batch")


def verify_student_access(db: Session, current_user: CurrentUser, student_id) -> None:
    if current_user.is_admin:
        return
    if not current_user.has_role("parent"):
        raise AccessDenied("Parent or admin role required")

    linked = (
        db.query(StudentGuardian.id)
        .filter(
            StudentGuardian.user_id == current_user.id,
            StudentGuardian.student_id == student_id,
            StudentGuardian.is_active.is_(True),
        )
        .first()
    )
    if not linked:
        raise AccessDenied("You do not have permission to access this student")


def restrict_to_today_for_teachers(current_user: CurrentUser, session_date: Optional[date]) -> None:
    if current_user.is_admin or not current_user.has_role("teacher"):
        return
    if session_date and session_date != date.today():
        raise AccessDenied(
            "Teachers can only mark attendance for today. "
            "Contact admin to mark attendance for past dates."
        )


def parse_uuid(value: str, label: str = "id") -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise BadRequestError(f"Invalid {label} parameter")
