"""Role grants and account-to-profile links."""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError
from app.models.auth import RoleGrant, StudentGuardian, TeacherUser, User
from app.models.users import Student, Teacher, UserRole

logger = logging.getLogger(__name__)

VALID_ROLES = [r.value for r in UserRole]


def active_grant(db: Session, user_id, role: str) -> Optional[RoleGrant]:
    return (
        db.query(RoleGrant)
        .filter(
            RoleGrant.user_id == user_id,
            RoleGrant.role == UserRole(role),
            RoleGrant.revoked_at.is_(None),
        )
        .first()
    )


def ensure_role(db: Session, user_id, role: str, granted_by=None) -> RoleGrant:
    grant = active_grant(db, user_id, role)
    if grant:
        return grant
    grant = RoleGrant(user_id=user_id, role=UserRole(role), granted_by=granted_by)
    db.add(grant)
    db.flush()
    logger.info(f"Granted role {role} to user {user_id}")
    return grant


def get_user_or_404(db: Session, user_id) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User")
    return user


def link_teacher(db: Session, user_id, teacher_id, linked_by=None) -> TeacherUser:
    """Create or reactivate a user -> teacher link and grant the teacher role."""
    get_user_or_404(db, user_id)
    if not db.query(Teacher).filter(Teacher.id == teacher_id).first():
        raise NotFoundError("Teacher")

    link = (
        db.query(TeacherUser)
        .filter(TeacherUser.user_id == user_id, TeacherUser.teacher_id == teacher_id)
        .first()
    )
    if link:
        link.is_active = True
        link.linked_at = datetime.utcnow()
    else:
        link = TeacherUser(user_id=user_id, teacher_id=teacher_id, linked_by=linked_by)
        db.add(link)
    ensure_role(db, user_id, "teacher", granted_by=linked_by)
    db.flush()
    return link


def link_student(
    db: Session, user_id, student_id, relationship: str = "parent", linked_by=None
) -> StudentGuardian:
    """Create or reactivate a guardian link and grant the parent role."""
    get_user_or_404(db, user_id)
    if not db.query(Student).filter(Student.id == student_id).first():
        raise NotFoundError("Student")

    link = (
        db.query(StudentGuardian)
        .filter(StudentGuardian.user_id == user_id, StudentGuardian.student_id == student_id)
        .first()
    )
    if link:
        link.is_active = True
        link.relationship_type = relationship
        link.linked_at = datetime.utcnow()
    else:
        link = StudentGuardian(
            user_id=user_id,
            student_id=student_id,
            relationship_type=relationship,
            linked_by=linked_by,
        )
        db.add(link)
    ensure_role(db, user_id, "parent", granted_by=linked_by)
    db.flush()
    return link


def serialize_user(db: Session, user: User) -> Dict[str, Any]:
    teacher_link = db.query(TeacherUser).filter(TeacherUser.user_id == user.id).first()
    guardian_link = db.query(StudentGuardian).filter(StudentGuardian.user_id == user.id).first()
    return {
        "id": user.id,
        "google_id": user.google_id,
        "email": user.email,
        "name": user.name,
        "profile_picture": user.profile_picture,
        "email_verified": user.email_verified,
        "last_login": user.last_login,
        "is_active": user.is_active,
        "created_at": user.created_at,
        "roles": [
            {
                "role": g.role.value if hasattr(g.role, "value") else g.role,
                "granted_at": g.granted_at,
                "granted_by": g.granted_by,
            }
            for g in user.role_grants
            if g.revoked_at is None
        ],
        "teacher_id": teacher_link.teacher_id if teacher_link else None,
        "student_id": guardian_link.student_id if guardian_link else None,
    }
