import secrets
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Union

from jose import jwt

from app.core.config import settings

ALGORITHM = settings.JWT_ALGORITHM
SECRET_KEY = settings.JWT_SECRET


def create_access_token(
    subject: Union[str, Any],
    email: Optional[str] = None,
    roles: Optional[List[str]] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS)
    to_encode = {
        "exp": expire,
        "sub": str(subject),
        "email": email,
        "roles": list(roles or []),
        "type": "access",
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Raises jose.ExpiredSignatureError / jose.JWTError on bad tokens."""
    return jwt.decode(
        token,
        SECRET_KEY,
        algorithms=[ALGORITHM],
        audience=settings.JWT_AUDIENCE,
        issuer=settings.JWT_ISSUER,
    )


def generate_refresh_token() -> str:
    # Opaque value; validity lives in the refresh_tokens table
    return f"{uuid.uuid4()}.{secrets.token_urlsafe(24)}"


def refresh_token_expiry() -> datetime:
    return datetime.utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)


def generate_oauth_state() -> str:
    return secrets.token_urlsafe(16)
