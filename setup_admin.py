"""Grant the admin role to an existing user, or pre-create the account.

Usage: python setup_admin.py <email@example.com>
"""
import sys

from app.core.config import settings
from app.core.database import SessionLocal
from app.models.auth import User
from app.services import accounts


def setup_admin(email: str) -> None:
    db = SessionLocal()
    try:
        print(f"Setting up admin access for: {email}")
        user = db.query(User).filter(User.email == email).first()
        if not user:
            # The first Google sign-in with this address attaches to this row
            user = User(email=email, name=email.split("@")[0], is_active=True)
            db.add(user)
            db.flush()
            print("  No user yet, created a placeholder account.")
        else:
            print(f"  Found user {user.id} ({user.name})")

        print(f"  Current roles: {', '.join(user.active_roles) or 'none'}")
        if accounts.active_grant(db, user.id, "admin"):
            print("  User already has admin role.")
        else:
            accounts.ensure_role(db, user.id, "admin", granted_by=user.id)
            print("  Admin role assigned.")
        db.commit()
        db.refresh(user)
        print(f"Final roles: {', '.join(user.active_roles)}")
        print(f"\nSign in through {settings.API_PREFIX}/auth/google to get a token.")
    except Exception as e:
        db.rollback()
        print(f"Error setting up admin: {e}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python setup_admin.py <email@example.com>")
        sys.exit(1)
    setup_admin(sys.argv[1])
