from sqlalchemy import (
    Column,
    String,
    Boolean,
    DateTime,
    Date,
    ForeignKey,
    Numeric,
    Text,
    JSON,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
import enum
from app.core.database import Base


class UserRole(str, enum.Enum):
    admin = "admin"
    teacher = "teacher"
    parent = "parent"
    student = "student"


class PayoutType(str, enum.Enum):
    fixed = "fixed"
    per_student_monthly = "per_student_monthly"
    per_class = "per_class"


class StudentType(str, enum.Enum):
    permanent = "permanent"
    prospect = "prospect"


class Teacher(Base):
    __tablename__ = "teachers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    email = Column(String)
    phone = Column(String)
    payout_type = Column(String, default=PayoutType.fixed.value)
    rate = Column(Numeric(10, 2), default=0)
    is_active = Column(Boolean, default=True)
    meta = Column("metadata", JSON, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    batches = relationship("Batch", back_populates="teacher")


class Student(Base):
    __tablename__ = "students"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    dob = Column(Date)
    phone = Column(String)
    guardian_contact = Column(String)
    email = Column(String, index=True)
    # email, address, guardian_*, total_credits, image, prospect status...
    meta = Column("metadata", JSON, default=dict)
    student_type = Column(String(50), default=StudentType.permanent.value)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    enrollments = relationship("Enrollment", back_populates="student")
    documents = relationship(
        "StudentDocument", back_populates="student", cascade="all, delete-orphan"
    )


class StudentDocument(Base):
    __tablename__ = "student_documents"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id"), nullable=False)
    filename = Column(String, nullable=False)
    file_type = Column(String)
    file_data = Column(Text, nullable=False)  # base64
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now())

    student = relationship("Student", back_populates="documents")
