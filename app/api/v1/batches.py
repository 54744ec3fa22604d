import logging
from datetime import date
from typing import Any, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api import deps
from app.core.database import get_db
from app.core.exceptions import BadRequestError, NotFoundError
from app.models.academics import (
    AttendanceRecord,
    Batch,
    Enrollment,
    EnrollmentBatch,
    EnrollmentStatus,
    Instrument,
)
from app.models.users import Student, Teacher
from app.schemas.academics import BatchCreate, BatchResponse, BatchUpdate, InstrumentResponse
from app.schemas.auth import CurrentUser

logger = logging.getLogger(__name__)

router = APIRouter()


def _batch_summary(batch: Batch, instrument_name: str, teacher_name: Optional[str]) -> dict:
    return {
        "id": batch.id,
        "recurrence": batch.recurrence,
        "start_time": batch.start_time,
        "end_time": batch.end_time,
        "capacity": batch.capacity,
        "is_makeup": batch.is_makeup,
        "instrument_id": batch.instrument_id,
        "instrument_name": instrument_name,
        "teacher_id": batch.teacher_id,
        "teacher_name": teacher_name,
    }


@router.get("/instruments")
def list_instruments(db: Session = Depends(get_db)) -> Any:
    instruments = db.query(Instrument).order_by(Instrument.name).all()
    return {"instruments": [InstrumentResponse.model_validate(i) for i in instruments]}


@router.get("/batches")
def list_batches(db: Session = Depends(get_db)) -> Any:
    active_count = func.count(Enrollment.id)
    rows = (
        db.query(Batch, Instrument.name, Teacher.name, active_count)
        .join(Instrument, Instrument.id == Batch.instrument_id)
        .outerjoin(Teacher, Teacher.id == Batch.teacher_id)
        .outerjoin(EnrollmentBatch, EnrollmentBatch.batch_id == Batch.id)
        .outerjoin(
            Enrollment,
            (Enrollment.id == EnrollmentBatch.enrollment_id)
            & (Enrollment.status == EnrollmentStatus.active.value),
        )
        .filter(Batch.is_makeup.is_(False))
        .group_by(Batch.id, Instrument.name, Teacher.name)
        .order_by(Instrument.name, Batch.recurrence)
        .all()
    )
    batches = []
    for batch, instrument_name, teacher_name, count in rows:
        item = _batch_summary(batch, instrument_name, teacher_name)
        item["student_count"] = int(count or 0)
        batches.append(item)
    return {"batches": batches}


@router.get("/batches/{instrument_id}")
def list_instrument_batches(instrument_id: str, db: Session = Depends(get_db)) -> Any:
    instrument_uuid = deps.parse_uuid(instrument_id, "instrumentId")
    rows = (
        db.query(Batch, Instrument.name, Teacher.name)
        .join(Instrument, Instrument.id == Batch.instrument_id)
        .outerjoin(Teacher, Teacher.id == Batch.teacher_id)
        .filter(Batch.instrument_id == instrument_uuid, Batch.is_makeup.is_(False))
        .order_by(Batch.recurrence)
        .all()
    )
    return {"batches": [_batch_summary(b, i, t) for b, i, t in rows]}


@router.post("/batches", status_code=status.HTTP_201_CREATED)
def create_batch(
    batch_in: BatchCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    data = batch_in.model_dump()
    data["capacity"] = data.get("capacity") or 8
    batch = Batch(**data)
    db.add(batch)
    db.commit()
    db.refresh(batch)
    logger.info(f"Created batch {batch.id} ({batch.recurrence})")
    return {"batch": BatchResponse.model_validate(batch)}


@router.put("/batches/{batch_id}")
def update_batch(
    batch_id: UUID,
    batch_in: BatchUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    batch = db.query(Batch).filter(Batch.id == batch_id).first()
    if not batch:
        raise NotFoundError("Batch")
    for field, value in batch_in.model_dump().items():
        setattr(batch, field, value)
    db.commit()
    db.refresh(batch)
    return {"batch": BatchResponse.model_validate(batch)}


@router.delete("/batches/{batch_id}")
def delete_batch(
    batch_id: UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    batch = db.query(Batch).filter(Batch.id == batch_id).first()
    if not batch:
        raise NotFoundError("Batch")
    snapshot = BatchResponse.model_validate(batch)
    in_use = (
        db.query(EnrollmentBatch.id).filter(EnrollmentBatch.batch_id == batch_id).first()
        or db.query(AttendanceRecord.id).filter(AttendanceRecord.batch_id == batch_id).first()
    )
    if in_use:
        raise BadRequestError("Cannot delete batch with active enrollments or attendance records.")
    try:
        db.delete(batch)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise BadRequestError("Cannot delete batch with active enrollments or attendance records.")
    return {"message": "Batch deleted successfully", "batch": snapshot}


@router.get("/batches/{batch_id}/students")
def list_batch_students(
    batch_id: UUID,
    session_date: Optional[date] = Query(None, alias="date"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_staff),
) -> Any:
    """Active students of a batch, with their mark for ``date`` when given."""
    deps.verify_batch_ownership(db, current_user, batch_id)
    rows = (
        db.query(Student, EnrollmentBatch.classes_remaining)
        .join(Enrollment, Enrollment.student_id == Student.id)
        .join(EnrollmentBatch, EnrollmentBatch.enrollment_id == Enrollment.id)
        .filter(
            EnrollmentBatch.batch_id == batch_id,
            Enrollment.status == EnrollmentStatus.active.value,
        )
        .order_by(Student.name)
        .all()
    )

    marks = {}
    if session_date:
        marks = {
            r.student_id: r.status.value
            for r in db.query(AttendanceRecord).filter(
                AttendanceRecord.batch_id == batch_id,
                AttendanceRecord.session_date == session_date,
            )
        }

    students = []
    for student, classes_remaining in rows:
        meta = student.meta or {}
        item = {
            "student_id": student.id,
            "student_name": student.name,
            "phone": student.phone,
            "guardian_contact": student.guardian_contact,
            "meta_phone": meta.get("phone"),
            "guardian_phone": meta.get("guardian_phone"),
            "classes_remaining": classes_remaining,
        }
        if session_date:
            item["attendance_status"] = marks.get(student.id)
        students.append(item)
    return {"students": students}
