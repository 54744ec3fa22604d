from pydantic import BaseModel, Field
from typing import Optional, List, Any, Dict
from datetime import datetime, date, time
from uuid import UUID


class InstrumentResponse(BaseModel):
    id: UUID
    name: str
    online_supported: Optional[bool] = False
    max_batch_size: Optional[int] = None

    class Config:
        from_attributes = True


class BatchCreate(BaseModel):
    instrument_id: UUID
    teacher_id: Optional[UUID] = None
    recurrence: str = Field(min_length=1)
    start_time: time
    end_time: time
    capacity: Optional[int] = None


class BatchUpdate(BaseModel):
    teacher_id: Optional[UUID] = None
    recurrence: str = Field(min_length=1)
    start_time: time
    end_time: time
    capacity: Optional[int] = None


class BatchResponse(BaseModel):
    id: UUID
    instrument_id: UUID
    teacher_id: Optional[UUID] = None
    recurrence: str
    start_time: time
    end_time: time
    capacity: Optional[int] = None
    is_makeup: Optional[bool] = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AttendanceMark(BaseModel):
    batch_id: UUID
    student_id: UUID
    date: date
    status: str


class AttendanceBulk(BaseModel):
    records: List[AttendanceMark] = Field(min_length=1)


class AttendanceResponse(BaseModel):
    id: UUID
    batch_id: UUID
    student_id: UUID
    student_name: Optional[str] = None
    session_date: date
    status: str
    source: Optional[str] = None
    finalized_at: Optional[datetime] = None


# --- Public enrollment form ---


class EnrollmentStream(BaseModel):
    instrument: Any = None
    batch: Any = None
    payment: Any = None


class EnrollmentAnswers(BaseModel):
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None
    dob: Optional[date] = None
    address: Optional[str] = None
    guardianName: Optional[str] = None
    telephone: Optional[str] = None
    streams: Optional[List[Optional[EnrollmentStream]]] = None
    dateOfJoining: Optional[date] = None


class EnrollmentRequest(BaseModel):
    answers: EnrollmentAnswers


class EnrollmentCreated(BaseModel):
    ok: bool = True
    studentId: UUID
    enrollmentId: UUID
    message: str = "Enrollment successful"


class AgentMessage(BaseModel):
    sessionId: Optional[str] = None
    message: str = Field(min_length=1)


class AgentReply(BaseModel):
    sessionId: str
    collected: Dict[str, Any]
    missing: List[str]
    prompt: str
    readyForSubmission: bool
