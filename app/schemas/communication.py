from pydantic import BaseModel, Field, AliasChoices
from typing import Optional, Dict, Any
from datetime import datetime
from uuid import UUID


class NotificationCreate(BaseModel):
    type: str = Field(min_length=1)
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)
    action_link: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    user_id: Optional[UUID] = None


class NotificationResponse(BaseModel):
    id: UUID
    user_id: Optional[UUID] = None
    type: str
    title: str
    message: str
    is_read: bool = False
    action_link: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices("meta", "metadata")
    )
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProspectCreate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    instrument: Optional[str] = None
    source: Optional[str] = None


class ProspectUpdate(BaseModel):
    status: Optional[str] = None
    is_active: Optional[bool] = None


class ProspectNoteCreate(BaseModel):
    note: str = Field(min_length=1)
    created_by: Optional[str] = None


class ProspectNoteResponse(BaseModel):
    id: UUID
    student_id: UUID
    note: str
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
