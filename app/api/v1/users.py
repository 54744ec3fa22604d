import logging
from datetime import datetime
from typing import Any, List
from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api import deps
from app.core.database import get_db
from app.core.exceptions import BadRequestError, NotFoundError
from app.models.auth import RoleGrant, StudentGuardian, TeacherUser, User
from app.models.users import Student, Teacher, UserRole
from app.schemas.auth import CurrentUser
from app.schemas.users import EntityLink, RoleAssign, UserResponse, UserUpdate
from app.services import accounts

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=List[UserResponse])
def list_users(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    users = db.query(User).order_by(User.created_at.desc()).all()
    return [accounts.serialize_user(db, u) for u in users]


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    user = accounts.get_user_or_404(db, user_id)
    return accounts.serialize_user(db, user)


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: UUID,
    user_in: UserUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    if not isinstance(user_in.is_active, bool):
        raise BadRequestError("is_active must be a boolean")
    user = accounts.get_user_or_404(db, user_id)
    user.is_active = user_in.is_active
    db.commit()
    db.refresh(user)
    logger.info(f"User {user_id} is_active set to {user_in.is_active} by {current_user.id}")
    return accounts.serialize_user(db, user)


@router.post("/{user_id}/roles")
def assign_role(
    user_id: UUID,
    role_in: RoleAssign,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    if role_in.role not in accounts.VALID_ROLES:
        raise BadRequestError(
            "Invalid role. Must be one of: " + ", ".join(accounts.VALID_ROLES)
        )
    accounts.get_user_or_404(db, user_id)
    if accounts.active_grant(db, user_id, role_in.role):
        raise BadRequestError("User already has this role")

    grant = RoleGrant(user_id=user_id, role=UserRole(role_in.role), granted_by=current_user.id)
    db.add(grant)
    db.commit()
    db.refresh(grant)
    return {
        "id": grant.id,
        "user_id": grant.user_id,
        "role": grant.role.value,
        "granted_by": grant.granted_by,
        "granted_at": grant.granted_at,
    }


@router.delete("/{user_id}/roles/{role}")
def revoke_role(
    user_id: UUID,
    role: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    grant = accounts.active_grant(db, user_id, role) if role in accounts.VALID_ROLES else None
    if not grant:
        raise NotFoundError("Role")
    grant.revoked_at = datetime.utcnow()
    db.commit()
    logger.info(f"Role {role} revoked from user {user_id} by {current_user.id}")
    return {"message": "Role revoked successfully"}


@router.post("/{user_id}/link")
def link_user(
    user_id: UUID,
    link_in: EntityLink,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    if link_in.entity_type == "teacher":
        accounts.get_user_or_404(db, user_id)
        if not db.query(Teacher).filter(Teacher.id == link_in.entity_id).first():
            raise NotFoundError("Teacher")
        # A user maps to at most one teacher profile
        existing = db.query(TeacherUser).filter(TeacherUser.user_id == user_id).first()
        if existing:
            existing.teacher_id = link_in.entity_id
            existing.is_active = True
        else:
            db.add(TeacherUser(user_id=user_id, teacher_id=link_in.entity_id, linked_by=current_user.id))
        accounts.ensure_role(db, user_id, "teacher", granted_by=current_user.id)
    elif link_in.entity_type == "student":
        accounts.get_user_or_404(db, user_id)
        if not db.query(Student).filter(Student.id == link_in.entity_id).first():
            raise NotFoundError("Student")
        existing = (
            db.query(StudentGuardian)
            .filter(StudentGuardian.user_id == user_id, StudentGuardian.student_id == link_in.entity_id)
            .first()
        )
        if existing:
            raise BadRequestError("User already linked to this student")
        db.add(
            StudentGuardian(
                user_id=user_id,
                student_id=link_in.entity_id,
                relationship_type="parent",
                linked_by=current_user.id,
            )
        )
        accounts.ensure_role(db, user_id, "parent", granted_by=current_user.id)
    else:
        raise BadRequestError('entity_type must be either "teacher" or "student"')

    db.commit()
    return {"message": "User linked successfully"}


@router.delete("/{user_id}/link/{entity_type}/{entity_id}")
def unlink_user(
    user_id: UUID,
    entity_type: str,
    entity_id: UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    if entity_type == "teacher":
        link = (
            db.query(TeacherUser)
            .filter(TeacherUser.user_id == user_id, TeacherUser.teacher_id == entity_id)
            .first()
        )
    elif entity_type == "student":
        link = (
            db.query(StudentGuardian)
            .filter(StudentGuardian.user_id == user_id, StudentGuardian.student_id == entity_id)
            .first()
        )
    else:
        raise BadRequestError('entityType must be either "teacher" or "student"')

    if not link:
        raise NotFoundError("Link")
    db.delete(link)
    db.commit()
    return {"message": "User unlinked successfully"}
