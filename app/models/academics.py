from sqlalchemy import (
    Column,
    String,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
import enum
from datetime import date
from app.core.database import Base


class AttendanceStatus(str, enum.Enum):
    present = "present"
    absent = "absent"
    excused = "excused"


class SessionStatus(str, enum.Enum):
    conducted = "conducted"
    not_conducted = "not_conducted"


class EnrollmentStatus(str, enum.Enum):
    active = "active"
    completed = "completed"


class Instrument(Base):
    __tablename__ = "instruments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, unique=True, nullable=False)
    online_supported = Column(Boolean, default=False)
    max_batch_size = Column(Integer, default=8)


class Batch(Base):
    __tablename__ = "batches"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    instrument_id = Column(
        UUID(as_uuid=True), ForeignKey("instruments.id"), nullable=False
    )
    teacher_id = Column(UUID(as_uuid=True), ForeignKey("teachers.id"), nullable=True)
    recurrence = Column(String, nullable=False)  # "TUE 17:00-18:00, THU 17:00-18:00"
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    capacity = Column(Integer, default=8)
    is_makeup = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    instrument = relationship("Instrument")
    teacher = relationship("Teacher", back_populates="batches")


class Enrollment(Base):
    __tablename__ = "enrollments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id"), nullable=False)
    instrument_id = Column(
        UUID(as_uuid=True), ForeignKey("instruments.id"), nullable=True
    )
    status = Column(String, default=EnrollmentStatus.active.value)
    classes_remaining = Column(Integer, default=0)
    enrolled_on = Column(Date, default=date.today)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    student = relationship("Student", back_populates="enrollments")
    batch_links = relationship(
        "EnrollmentBatch", back_populates="enrollment", cascade="all, delete-orphan"
    )


class EnrollmentBatch(Base):
    __tablename__ = "enrollment_batches"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    enrollment_id = Column(
        UUID(as_uuid=True), ForeignKey("enrollments.id"), nullable=False
    )
    batch_id = Column(UUID(as_uuid=True), ForeignKey("batches.id"), nullable=False)
    payment_frequency = Column(String, default="monthly")
    classes_remaining = Column(Integer, default=0)  # may go negative
    enrolled_on = Column(Date, nullable=True)

    enrollment = relationship("Enrollment", back_populates="batch_links")
    batch = relationship("Batch")


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (UniqueConstraint("batch_id", "student_id", "session_date"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    batch_id = Column(UUID(as_uuid=True), ForeignKey("batches.id"), nullable=False)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id"), nullable=False)
    session_date = Column(Date, nullable=False)
    status = Column(Enum(AttendanceStatus), nullable=False)
    source = Column(String, default="manual")
    finalized_at = Column(DateTime(timezone=True))

    student = relationship("Student")
    batch = relationship("Batch")


class TeacherAttendance(Base):
    __tablename__ = "teacher_attendance"
    __table_args__ = (UniqueConstraint("batch_id", "session_date"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    teacher_id = Column(UUID(as_uuid=True), ForeignKey("teachers.id"), nullable=True)
    batch_id = Column(UUID(as_uuid=True), ForeignKey("batches.id"), nullable=False)
    session_date = Column(Date, nullable=False)
    status = Column(Enum(SessionStatus), nullable=False)
    notes = Column(Text)
    marked_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class StudentEvaluation(Base):
    __tablename__ = "student_evaluations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id"), nullable=False)
    teacher_id = Column(UUID(as_uuid=True), ForeignKey("teachers.id"), nullable=True)
    batch_id = Column(UUID(as_uuid=True), ForeignKey("batches.id"), nullable=True)
    feedback = Column(Text)
    rating = Column(Integer)
    milestone_reached = Column(String)
    evaluation_date = Column(Date, default=date.today)
    next_evaluation_date = Column(Date)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    teacher = relationship("Teacher")
    batch = relationship("Batch")
