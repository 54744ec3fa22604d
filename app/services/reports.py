"""
Read-side aggregates: the student 360 and teacher 360 views.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.models.academics import (
    AttendanceRecord,
    AttendanceStatus,
    Batch,
    Enrollment,
    EnrollmentBatch,
    Instrument,
    SessionStatus,
    StudentEvaluation,
    TeacherAttendance,
)
from app.models.finance import Payment, TeacherPayout
from app.models.users import Student, Teacher
from app.schemas.students import StudentResponse
from app.services import credits, schedule

logger = logging.getLogger(__name__)

PAYOUT_HISTORY_LIMIT = 24


def _attendance_counts(db: Session, student_id) -> Dict[str, int]:
    rows = (
        db.query(AttendanceRecord.status, func.count(AttendanceRecord.id))
        .filter(AttendanceRecord.student_id == student_id)
        .group_by(AttendanceRecord.status)
        .all()
    )
    counts = {s.value: 0 for s in AttendanceStatus}
    for status, count in rows:
        counts[status.value if hasattr(status, "value") else status] = count
    return counts


def find_student_by_email(db: Session, email: str) -> Optional[Student]:
    # The address may live on the column or only in metadata
    return (
        db.query(Student)
        .filter(or_(Student.email == email, Student.meta["email"].as_string() == email))
        .first()
    )


def student_360(db: Session, student: Student) -> Dict[str, Any]:
    attendance = _attendance_counts(db, student.id)
    present, absent = attendance["present"], attendance["absent"]

    batch_rows = (
        db.query(Batch, Instrument, Teacher, EnrollmentBatch)
        .join(EnrollmentBatch, EnrollmentBatch.batch_id == Batch.id)
        .join(Enrollment, Enrollment.id == EnrollmentBatch.enrollment_id)
        .outerjoin(Instrument, Instrument.id == Batch.instrument_id)
        .outerjoin(Teacher, Teacher.id == Batch.teacher_id)
        .filter(Enrollment.student_id == student.id, Enrollment.status == "active")
        .all()
    )
    batches = [
        {
            "id": batch.id,
            "instrument": instrument.name if instrument else None,
            "recurrence": batch.recurrence,
            "teacher": teacher.name if teacher else None,
            "payment_frequency": link.payment_frequency,
            "classes_remaining": link.classes_remaining,
        }
        for batch, instrument, teacher, link in batch_rows
    ]

    payments = (
        db.query(Payment)
        .filter(Payment.student_id == student.id)
        .order_by(Payment.timestamp.desc())
        .all()
    )

    latest_eval = (
        db.query(StudentEvaluation)
        .filter(StudentEvaluation.student_id == student.id)
        .order_by(StudentEvaluation.evaluation_date.desc(), StudentEvaluation.created_at.desc())
        .first()
    )

    total_credits = (student.meta or {}).get("total_credits")
    remaining = credits.remaining_credits(
        total_credits,
        present,
        absent,
        [b["classes_remaining"] for b in batches],
    )

    return {
        "personal": {
            "details": StudentResponse.model_validate(student).model_dump(mode="json"),
            "attendance_summary": attendance,
        },
        "academic": {
            "batches": batches,
            "latest_evaluation": evaluation_to_dict(latest_eval) if latest_eval else None,
        },
        "payment": {
            "history": [
                {
                    "id": p.id,
                    "amount": float(p.amount),
                    "timestamp": p.timestamp,
                    "method": p.method,
                    "package_id": p.package_id,
                }
                for p in payments
            ],
            "summary": {
                "classes_attended": present,
                "classes_remaining": remaining,
                "classes_missed": absent,
            },
        },
    }


def evaluation_to_dict(evaluation: StudentEvaluation) -> Dict[str, Any]:
    return {
        "id": evaluation.id,
        "student_id": evaluation.student_id,
        "teacher_id": evaluation.teacher_id,
        "teacher_name": evaluation.teacher.name if evaluation.teacher else None,
        "batch_id": evaluation.batch_id,
        "feedback": evaluation.feedback,
        "rating": evaluation.rating,
        "milestone_reached": evaluation.milestone_reached,
        "evaluation_date": evaluation.evaluation_date,
        "next_evaluation_date": evaluation.next_evaluation_date,
        "created_at": evaluation.created_at,
    }


def teacher_batches(db: Session, teacher_id) -> List[Dict[str, Any]]:
    """Batches of a teacher with their count of active enrollments."""
    active_count = func.count(func.distinct(Enrollment.id))
    rows = (
        db.query(Batch, Instrument.name, active_count)
        .join(Instrument, Instrument.id == Batch.instrument_id)
        .outerjoin(EnrollmentBatch, EnrollmentBatch.batch_id == Batch.id)
        .outerjoin(
            Enrollment,
            (Enrollment.id == EnrollmentBatch.enrollment_id) & (Enrollment.status == "active"),
        )
        .filter(Batch.teacher_id == teacher_id)
        .group_by(Batch.id, Instrument.name)
        .all()
    )
    return [
        {
            "id": batch.id,
            "instrument_name": name,
            "recurrence": batch.recurrence,
            "capacity": batch.capacity,
            "start_time": batch.start_time,
            "end_time": batch.end_time,
            "active_students": int(count or 0),
        }
        for batch, name, count in rows
    ]


def _teacher_sessions(db: Session, teacher_id):
    marks = (
        db.query(TeacherAttendance.batch_id, TeacherAttendance.session_date, TeacherAttendance.status)
        .join(Batch, Batch.id == TeacherAttendance.batch_id)
        .filter(Batch.teacher_id == teacher_id)
        .all()
    )
    explicit = [(b, d) for b, d, s in marks if _value(s) == SessionStatus.conducted.value]
    marked = [(b, d) for b, d, _ in marks]
    implicit = (
        db.query(AttendanceRecord.batch_id, AttendanceRecord.session_date)
        .join(Batch, Batch.id == AttendanceRecord.batch_id)
        .filter(Batch.teacher_id == teacher_id)
        .distinct()
        .all()
    )
    return schedule.monthly_sessions(explicit, implicit, marked)


def _value(status):
    return status.value if hasattr(status, "value") else status


def _period_label(payout: TeacherPayout) -> Optional[str]:
    when = payout.period_start or payout.created_at
    return when.strftime("%b %Y") if when else None


def teacher_360(db: Session, teacher: Teacher, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or date.today()
    batches = teacher_batches(db, teacher.id)
    total_active = sum(b["active_students"] for b in batches)

    def expected_for(year: int, month: int) -> int:
        return sum(
            schedule.count_expected_sessions(b["recurrence"], year, month) for b in batches
        )

    monthly = [
        {
            "month": month,
            "conducted": conducted,
            "expected": expected_for(int(month[:4]), int(month[5:7])),
        }
        for month, conducted in _teacher_sessions(db, teacher.id)
    ]

    current_key = schedule.month_key(today)
    current_sessions = next((m["conducted"] for m in monthly if m["month"] == current_key), 0)
    rate = float(teacher.rate or 0)
    amount, basis = schedule.project_payout(
        teacher.payout_type, rate, active_students=total_active, sessions=current_sessions
    )

    payouts = (
        db.query(TeacherPayout)
        .filter(TeacherPayout.teacher_id == teacher.id)
        .order_by(TeacherPayout.created_at.desc())
        .limit(PAYOUT_HISTORY_LIMIT)
        .all()
    )
    history = [
        {
            "id": p.id,
            "amount": float(p.amount),
            "method": p.method,
            "period_start": p.period_start,
            "period_end": p.period_end,
            "linked_classes_count": p.linked_classes_count,
            "created_at": p.created_at,
            "period": _period_label(p),
        }
        for p in payouts
    ]

    return {
        "profile": {
            "id": teacher.id,
            "name": teacher.name,
            "phone": teacher.phone or "",
            "email": teacher.email or (teacher.meta or {}).get("email", ""),
            "payout_type": teacher.payout_type,
            "rate": rate,
            "is_active": teacher.is_active,
            "batch_count": len(batches),
            "batches": [
                {
                    "id": b["id"],
                    "instrument_name": b["instrument_name"],
                    "recurrence": b["recurrence"],
                    "capacity": b["capacity"],
                    "active_students": b["active_students"],
                }
                for b in batches
            ],
        },
        "attendance": {
            "summary": {
                "total_sessions_conducted": sum(m["conducted"] for m in monthly),
                "current_month_sessions": current_sessions,
                "current_month_expected": expected_for(today.year, today.month),
            },
            "monthly_breakdown": monthly,
        },
        "payout": {
            "projected": {"amount": amount, "basis": basis, "model": teacher.payout_type},
            "history": history,
            "total_paid": sum(p["amount"] for p in history),
        },
    }
