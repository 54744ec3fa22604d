import logging
from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api import deps
from app.core.database import get_db
from app.core.exceptions import BadRequestError
from app.models.academics import AttendanceRecord, AttendanceStatus, Enrollment, EnrollmentBatch
from app.models.users import Student
from app.schemas.academics import AttendanceBulk, AttendanceResponse
from app.schemas.auth import CurrentUser
from app.services import credits

logger = logging.getLogger(__name__)

router = APIRouter()

VALID_STATUSES = [s.value for s in AttendanceStatus]


@router.get("/")
def list_attendance(
    student_id: Optional[UUID] = None,
    batch_id: Optional[UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_staff),
) -> Any:
    if batch_id:
        deps.verify_batch_ownership(db, current_user, batch_id)

    query = db.query(AttendanceRecord, Student.name).join(
        Student, Student.id == AttendanceRecord.student_id
    )
    if student_id:
        query = query.filter(AttendanceRecord.student_id == student_id)
    if batch_id:
        query = query.filter(AttendanceRecord.batch_id == batch_id)
    if start_date:
        query = query.filter(AttendanceRecord.session_date >= start_date)
    if end_date:
        query = query.filter(AttendanceRecord.session_date <= end_date)

    records = query.order_by(AttendanceRecord.session_date.desc()).all()
    return {
        "attendance": [
            AttendanceResponse(
                id=record.id,
                batch_id=record.batch_id,
                student_id=record.student_id,
                student_name=student_name,
                session_date=record.session_date,
                status=record.status.value,
                source=record.source,
                finalized_at=record.finalized_at,
            )
            for record, student_name in records
        ]
    }


@router.post("/")
def save_attendance(
    attendance_in: AttendanceBulk,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_staff),
) -> Any:
    """
    Upsert a set of attendance marks in one transaction.

    Each mark moves the student's batch balance by the credit delta between
    the stored and the new status.
    """
    for mark in attendance_in.records:
        if mark.status not in VALID_STATUSES:
            raise BadRequestError("status must be one of: " + ", ".join(VALID_STATUSES))
        deps.verify_batch_ownership(db, current_user, mark.batch_id)
        deps.restrict_to_today_for_teachers(current_user, mark.date)

    for mark in attendance_in.records:
        record = (
            db.query(AttendanceRecord)
            .filter(
                AttendanceRecord.batch_id == mark.batch_id,
                AttendanceRecord.student_id == mark.student_id,
                AttendanceRecord.session_date == mark.date,
            )
            .first()
        )
        old_status = record.status if record else None
        if not record:
            record = AttendanceRecord(
                batch_id=mark.batch_id,
                student_id=mark.student_id,
                session_date=mark.date,
            )
            db.add(record)
        record.status = AttendanceStatus(mark.status)
        record.source = "manual"
        record.finalized_at = datetime.utcnow()

        delta = credits.attendance_credit_delta(old_status, mark.status)
        if delta:
            links = (
                db.query(EnrollmentBatch)
                .join(Enrollment, Enrollment.id == EnrollmentBatch.enrollment_id)
                .filter(
                    Enrollment.student_id == mark.student_id,
                    EnrollmentBatch.batch_id == mark.batch_id,
                )
                .all()
            )
            for link in links:
                link.classes_remaining = (link.classes_remaining or 0) + delta
        # Later marks in the same request must see this one
        db.flush()

    db.commit()
    logger.info(f"Saved {len(attendance_in.records)} attendance mark(s) by {current_user.id}")
    return {"message": "Attendance saved successfully"}
