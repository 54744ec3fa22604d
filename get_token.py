"""Print an access token for a user, as the OAuth callback would issue.

Usage: python get_token.py <email@example.com>
"""
import sys

from app.core import security
from app.core.database import SessionLocal
from app.models.auth import User


def get_token(email: str) -> None:
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email, User.is_active.is_(True)).first()
        if not user:
            print(f"User not found: {email}")
            sys.exit(1)
        token = security.create_access_token(user.id, user.email, user.active_roles)
        print(f"Token for {user.email} (roles: {', '.join(user.active_roles) or 'none'}):\n")
        print(token)
        print(f'\ncurl -H "Authorization: Bearer {token}" http://localhost:8000/api/auth/profile')
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python get_token.py <email@example.com>")
        sys.exit(1)
    get_token(sys.argv[1])
