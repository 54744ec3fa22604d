"""Refresh-token storage and rotation."""
import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from app.core import security
from app.core.exceptions import AuthenticationError
from app.models.auth import RefreshToken, User

logger = logging.getLogger(__name__)


def issue_refresh_token(db: Session, user: User) -> RefreshToken:
    record = RefreshToken(
        user_id=user.id,
        token=security.generate_refresh_token(),
        expires_at=security.refresh_token_expiry(),
    )
    db.add(record)
    db.flush()
    return record


def issue_tokens(db: Session, user: User) -> Tuple[str, RefreshToken]:
    """Return an access JWT and a new refresh-token row for ``user``; caller commits."""
    access_token = security.create_access_token(
        user.id, email=user.email, roles=user.active_roles
    )
    refresh = issue_refresh_token(db, user)
    return access_token, refresh


def _is_valid(record: RefreshToken, now: datetime) -> bool:
    if record.revoked_at is not None:
        return False
    expires_at = record.expires_at
    if expires_at.tzinfo is not None:
        expires_at = expires_at.replace(tzinfo=None) - expires_at.utcoffset()
    return expires_at > now


def rotate_refresh_token(db: Session, token: Optional[str]) -> Tuple[str, str, User]:
    """
    Swap a valid refresh token for a new access/refresh pair.

    The presented token is revoked with reason ``rotated`` and points at its
    replacement, so it can never be used again.
    """
    if not token:
        raise AuthenticationError("Refresh token required")

    now = datetime.utcnow()
    record = db.query(RefreshToken).filter(RefreshToken.token == token).first()
    if not record or not _is_valid(record, now):
        raise AuthenticationError("Invalid or expired refresh token")

    user = db.query(User).filter(User.id == record.user_id).first()
    if not user or not user.is_active:
        raise AuthenticationError("User account is inactive")

    access_token, replacement = issue_tokens(db, user)
    record.revoked_at = now
    record.revoked_reason = "rotated"
    record.replaced_by = replacement.id
    db.commit()
    logger.info(f"Rotated refresh token for user {user.id}")
    return access_token, replacement.token, user


def revoke_refresh_token(db: Session, token: str, reason: str = "logout") -> bool:
    record = (
        db.query(RefreshToken)
        .filter(RefreshToken.token == token, RefreshToken.revoked_at.is_(None))
        .first()
    )
    if not record:
        return False
    record.revoked_at = datetime.utcnow()
    record.revoked_reason = reason
    db.commit()
    return True
