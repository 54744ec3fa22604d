from app.core.database import SessionLocal
from app.models.auth import User


def list_users():
    db = SessionLocal()
    try:
        users = db.query(User).order_by(User.created_at.desc()).all()
        if not users:
            print("No users found. Sign in with Google or run setup_admin.py first.")
            return
        print(f"Found {len(users)} user(s):\n")
        for index, user in enumerate(users, start=1):
            print(f"{index}. {user.name or 'N/A'} <{user.email}>")
            print(f"   User ID: {user.id}")
            print(f"   Status: {'Active' if user.is_active else 'Inactive'}")
            print(f"   Roles: {', '.join(user.active_roles) or 'none'}")
            print(f"   Last Login: {user.last_login or 'Never'}")
            print("")
    finally:
        db.close()


if __name__ == "__main__":
    list_users()
