import logging
from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api import deps
from app.core.database import get_db
from app.core.exceptions import AccessDenied, BadRequestError, NotFoundError, SchoolAPIException
from app.models.academics import (
    Batch,
    Enrollment,
    EnrollmentBatch,
    EnrollmentStatus,
    Instrument,
    SessionStatus,
    TeacherAttendance,
)
from app.models.finance import TeacherPayout
from app.models.users import Student, Teacher
from app.schemas.auth import CurrentUser
from app.schemas.users import (
    TeacherCreate,
    TeacherPayoutCreate,
    TeacherPayoutResponse,
    TeacherResponse,
    TeacherSessionMark,
    TeacherUpdate,
)
from app.services import reports, schedule

logger = logging.getLogger(__name__)

router = APIRouter()


def get_teacher_or_404(db: Session, teacher_id) -> Teacher:
    teacher = db.query(Teacher).filter(Teacher.id == teacher_id).first()
    if not teacher:
        raise NotFoundError("Teacher")
    return teacher


def _ensure_own_profile(db: Session, current_user: CurrentUser, teacher_id) -> None:
    if current_user.is_admin:
        return
    if deps.get_teacher_id(db, current_user) != teacher_id:
        raise AccessDenied("You can only view your own teacher profile")


@router.get("/")
def list_teachers(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_staff),
) -> Any:
    teachers = db.query(Teacher).order_by(Teacher.name).all()
    return {"teachers": [TeacherResponse.model_validate(t) for t in teachers]}


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_teacher(
    teacher_in: TeacherCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    if not teacher_in.name or not teacher_in.email:
        raise BadRequestError("Missing required fields")
    teacher = Teacher(**teacher_in.model_dump())
    db.add(teacher)
    db.commit()
    db.refresh(teacher)
    return {"teacher": TeacherResponse.model_validate(teacher)}


# --- Teacher session marks ---


@router.get("/attendance")
def list_teacher_attendance(
    session_date: Optional[date] = Query(None, alias="date"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_staff),
) -> Any:
    """Batches scheduled on ``date`` (default today) with their session mark."""
    day = session_date or date.today()
    query = (
        db.query(Batch, Instrument.name, Teacher.name)
        .join(Instrument, Instrument.id == Batch.instrument_id)
        .outerjoin(Teacher, Teacher.id == Batch.teacher_id)
        .filter(Batch.is_makeup.is_(False))
    )
    if not current_user.is_admin:
        teacher_id = deps.get_teacher_id(db, current_user)
        if teacher_id is None:
            return {"date": day, "batches": []}
        query = query.filter(Batch.teacher_id == teacher_id)
    rows = [
        row for row in query.order_by(Batch.start_time).all()
        if schedule.is_scheduled_on(row[0].recurrence, day)
    ]
    if not rows:
        return {"date": day, "batches": []}

    marks = {
        m.batch_id: m
        for m in db.query(TeacherAttendance).filter(
            TeacherAttendance.session_date == day,
            TeacherAttendance.batch_id.in_([b.id for b, _, _ in rows]),
        )
    }
    batches = []
    for batch, instrument_name, teacher_name in rows:
        mark = marks.get(batch.id)
        batches.append(
            {
                "batch_id": batch.id,
                "instrument_name": instrument_name,
                "teacher_id": batch.teacher_id,
                "teacher_name": teacher_name or "Unassigned",
                "recurrence": batch.recurrence,
                "start_time": batch.start_time.strftime("%H:%M") if batch.start_time else None,
                "end_time": batch.end_time.strftime("%H:%M") if batch.end_time else None,
                # None until marked
                "status": mark.status.value if mark else None,
                "notes": (mark.notes or "") if mark else "",
            }
        )
    return {"date": day, "batches": batches}


@router.post("/attendance")
def mark_teacher_attendance(
    mark_in: TeacherSessionMark,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_staff),
) -> Any:
    if mark_in.status not in [s.value for s in SessionStatus]:
        raise BadRequestError("status must be conducted or not_conducted")
    deps.verify_batch_ownership(db, current_user, mark_in.batch_id)
    deps.restrict_to_today_for_teachers(current_user, mark_in.session_date)

    mark = (
        db.query(TeacherAttendance)
        .filter(
            TeacherAttendance.batch_id == mark_in.batch_id,
            TeacherAttendance.session_date == mark_in.session_date,
        )
        .first()
    )
    if not mark:
        mark = TeacherAttendance(batch_id=mark_in.batch_id, session_date=mark_in.session_date)
        db.add(mark)
    else:
        mark.updated_at = datetime.utcnow()
    mark.teacher_id = mark_in.teacher_id or mark.teacher_id
    mark.status = SessionStatus(mark_in.status)
    mark.notes = mark_in.notes or None
    mark.marked_by = current_user.id
    db.commit()
    return {"success": True}


@router.get("/me/360")
def get_my_teacher_id(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.get_current_user),
) -> Any:
    teacher_id = deps.get_teacher_id(db, current_user)
    if not teacher_id:
        raise SchoolAPIException(
            status_code=404,
            detail="No teacher profile linked to this account. Ask an admin to link your account.",
        )
    return {"teacher_id": teacher_id}


# --- Single teacher ---


@router.put("/{teacher_id}")
def update_teacher(
    teacher_id: UUID,
    teacher_in: TeacherUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    teacher = get_teacher_or_404(db, teacher_id)
    for field, value in teacher_in.model_dump(exclude_none=True).items():
        setattr(teacher, field, value)
    db.commit()
    db.refresh(teacher)
    return {"teacher": TeacherResponse.model_validate(teacher)}


@router.delete("/{teacher_id}")
def delete_teacher(
    teacher_id: UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    teacher = get_teacher_or_404(db, teacher_id)
    if teacher.batches:
        raise BadRequestError("Failed to delete teacher. They may be assigned to batches.")
    try:
        db.delete(teacher)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise BadRequestError("Failed to delete teacher. They may be assigned to batches.")
    return {"message": "Teacher deleted successfully"}


@router.get("/{teacher_id}/students")
def list_teacher_students(
    teacher_id: UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_staff),
) -> Any:
    _ensure_own_profile(db, current_user, teacher_id)
    rows = (
        db.query(Student, Instrument.name, Batch, Enrollment.status, EnrollmentBatch.classes_remaining)
        .join(Enrollment, Enrollment.student_id == Student.id)
        .join(EnrollmentBatch, EnrollmentBatch.enrollment_id == Enrollment.id)
        .join(Batch, Batch.id == EnrollmentBatch.batch_id)
        .join(Instrument, Instrument.id == Batch.instrument_id)
        .filter(
            Batch.teacher_id == teacher_id,
            Enrollment.status == EnrollmentStatus.active.value,
            Batch.is_makeup.is_(False),
        )
        .order_by(Student.name)
        .all()
    )
    return {
        "students": [
            {
                "id": student.id,
                "name": student.name,
                "phone": student.phone,
                "guardian_contact": student.guardian_contact,
                "instrument": instrument,
                "batch_id": batch.id,
                "recurrence": batch.recurrence,
                "enrollment_status": enrollment_status,
                "classes_remaining": classes_remaining,
            }
            for student, instrument, batch, enrollment_status, classes_remaining in rows
        ]
    }


@router.get("/{teacher_id}/360")
def get_teacher_360(
    teacher_id: UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_staff),
) -> Any:
    _ensure_own_profile(db, current_user, teacher_id)
    teacher = get_teacher_or_404(db, teacher_id)
    return reports.teacher_360(db, teacher)


@router.get("/{teacher_id}/payouts")
def list_payouts(
    teacher_id: UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    get_teacher_or_404(db, teacher_id)
    payouts = (
        db.query(TeacherPayout)
        .filter(TeacherPayout.teacher_id == teacher_id)
        .order_by(TeacherPayout.created_at.desc())
        .all()
    )
    return {"payouts": [TeacherPayoutResponse.model_validate(p) for p in payouts]}


@router.post("/{teacher_id}/payouts", status_code=status.HTTP_201_CREATED)
def record_payout(
    teacher_id: UUID,
    payout_in: TeacherPayoutCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    get_teacher_or_404(db, teacher_id)
    payout = TeacherPayout(teacher_id=teacher_id, **payout_in.model_dump())
    db.add(payout)
    db.commit()
    db.refresh(payout)
    logger.info(f"Recorded payout of {payout.amount} for teacher {teacher_id}")
    return {"payout": TeacherPayoutResponse.model_validate(payout)}
