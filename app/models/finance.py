from sqlalchemy import Column, String, Date, DateTime, ForeignKey, Integer, Numeric, Text, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
from app.core.database import Base


class Package(Base):
    __tablename__ = "packages"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    instrument_id = Column(
        UUID(as_uuid=True), ForeignKey("instruments.id"), nullable=True
    )
    name = Column(String, nullable=False)  # "Monthly", "Quarterly"
    classes_count = Column(Integer, nullable=False, default=0)
    price = Column(Numeric(10, 2), nullable=False, default=0)

    instrument = relationship("Instrument")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id"), nullable=False)
    package_id = Column(UUID(as_uuid=True), ForeignKey("packages.id"), nullable=True)
    amount = Column(Numeric(10, 2), nullable=False)
    method = Column(String)
    transaction_id = Column(String)
    # payment_for, notes, payment_frequency, credits_bought
    meta = Column("metadata", JSON, default=dict)
    timestamp = Column(DateTime(timezone=True), default=datetime.utcnow)

    student = relationship("Student")
    package = relationship("Package")


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    category = Column(String, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    date = Column(Date, nullable=False)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class MonthlyBudget(Base):
    __tablename__ = "monthly_budgets"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    month = Column(String(7), unique=True, nullable=False)  # e.g. "2026-05"
    revenue_target = Column(Numeric(12, 2), default=0)
    expense_limits = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class TeacherPayout(Base):
    __tablename__ = "teacher_payouts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    teacher_id = Column(UUID(as_uuid=True), ForeignKey("teachers.id"), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    method = Column(String)
    period_start = Column(Date)
    period_end = Column(Date)
    linked_classes_count = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)

    teacher = relationship("Teacher")
