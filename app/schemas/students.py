from pydantic import BaseModel, Field, AliasChoices
from typing import Optional, List, Dict, Any
from datetime import datetime, date
from uuid import UUID


class BatchSelection(BaseModel):
    batch_id: UUID
    instrument_id: Optional[UUID] = None
    payment_frequency: Optional[str] = None
    classes_remaining: Optional[int] = None
    enrolled_on: Optional[date] = None


class InitialPayment(BaseModel):
    amount: Optional[float] = None
    method: Optional[str] = None
    package_id: Optional[UUID] = None
    transaction_id: Optional[str] = None


class StudentCreate(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str = Field(min_length=1)
    dob: Optional[date] = None
    phone: Optional[str] = None
    guardian_name: Optional[str] = None
    guardian_phone: Optional[str] = None
    address: Optional[str] = None
    batches: List[BatchSelection] = []
    payment: Optional[InitialPayment] = None
    metadata: Optional[Dict[str, Any]] = None


class StudentUpdate(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str = Field(min_length=1)
    dob: Optional[date] = None
    phone: Optional[str] = None
    guardian_name: Optional[str] = None
    guardian_phone: Optional[str] = None
    address: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class StudentResponse(BaseModel):
    id: UUID
    name: str
    dob: Optional[date] = None
    phone: Optional[str] = None
    guardian_contact: Optional[str] = None
    email: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices("meta", "metadata")
    )
    student_type: Optional[str] = None
    is_active: Optional[bool] = True
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StudentImage(BaseModel):
    image: str = Field(min_length=1)


# --- Evaluations ---


class EvaluationCreate(BaseModel):
    teacher_id: Optional[UUID] = None
    batch_id: Optional[UUID] = None
    feedback: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    milestone_reached: Optional[str] = None
    evaluation_date: Optional[date] = None
    next_evaluation_date: Optional[date] = None


class EvaluationResponse(EvaluationCreate):
    id: UUID
    student_id: UUID
    teacher_name: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# --- Documents ---


class DocumentCreate(BaseModel):
    filename: str = Field(min_length=1)
    file_type: Optional[str] = None
    file_data: str = Field(min_length=1)  # base64


class DocumentSummary(BaseModel):
    id: UUID
    filename: str
    file_type: Optional[str] = None
    uploaded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DocumentResponse(DocumentSummary):
    student_id: UUID
    file_data: str
