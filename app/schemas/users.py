from pydantic import BaseModel, Field, AliasChoices
from typing import Optional, List, Dict, Any
from datetime import datetime, date
from uuid import UUID


# --- User account schemas ---


class RoleGrantResponse(BaseModel):
    role: str
    granted_at: Optional[datetime] = None
    granted_by: Optional[UUID] = None


class UserResponse(BaseModel):
    id: UUID
    google_id: Optional[str] = None
    email: str
    name: Optional[str] = None
    profile_picture: Optional[str] = None
    email_verified: Optional[bool] = None
    last_login: Optional[datetime] = None
    is_active: bool
    created_at: Optional[datetime] = None
    roles: List[RoleGrantResponse] = []
    teacher_id: Optional[UUID] = None
    student_id: Optional[UUID] = None


class UserUpdate(BaseModel):
    # Checked in the handler so "true" or 1 get a 400, not a 422
    is_active: Any = None


class RoleAssign(BaseModel):
    role: str


class EntityLink(BaseModel):
    entity_type: str
    entity_id: UUID


# --- Teacher schemas ---


class TeacherBase(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    payout_type: Optional[str] = "fixed"
    rate: Optional[float] = 0


class TeacherCreate(TeacherBase):
    pass


class TeacherUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    payout_type: Optional[str] = None
    rate: Optional[float] = None
    is_active: Optional[bool] = None


class TeacherResponse(TeacherBase):
    id: UUID
    is_active: Optional[bool] = True
    metadata: Optional[Dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices("meta", "metadata")
    )
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TeacherPayoutCreate(BaseModel):
    amount: float
    method: Optional[str] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    linked_classes_count: Optional[int] = 0


class TeacherPayoutResponse(TeacherPayoutCreate):
    id: UUID
    teacher_id: UUID
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TeacherSessionMark(BaseModel):
    teacher_id: Optional[UUID] = None
    batch_id: UUID
    session_date: date
    status: str
    notes: Optional[str] = None
