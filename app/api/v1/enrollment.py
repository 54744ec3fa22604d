import logging
from typing import Any
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session, joinedload

from app.api import deps
from app.core.database import get_db
from app.models.academics import Batch, Enrollment, EnrollmentBatch
from app.models.users import Student, StudentType
from app.schemas.academics import AgentMessage, AgentReply, EnrollmentCreated, EnrollmentRequest
from app.schemas.auth import CurrentUser
from app.services import enrollment as enrollment_service
from app.services.enrollment_agent import agent

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/enroll", status_code=status.HTTP_201_CREATED, response_model=EnrollmentCreated)
def enroll(
    payload: EnrollmentRequest,
    db: Session = Depends(get_db),
) -> Any:
    """Public enrollment form submission."""
    logger.info("New enrollment request received")
    student, enrollment = enrollment_service.register_enrollment(db, payload.answers)
    db.commit()
    return EnrollmentCreated(studentId=student.id, enrollmentId=enrollment.id)


@router.get("/enrollments")
def list_enrollments(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    students = (
        db.query(Student)
        .options(
            joinedload(Student.enrollments)
            .joinedload(Enrollment.batch_links)
            .joinedload(EnrollmentBatch.batch)
            .joinedload(Batch.instrument),
            joinedload(Student.enrollments)
            .joinedload(Enrollment.batch_links)
            .joinedload(EnrollmentBatch.batch)
            .joinedload(Batch.teacher),
        )
        .filter(
            (Student.student_type == StudentType.permanent.value)
            | Student.student_type.is_(None)
        )
        .order_by(Student.name)
        .all()
    )

    rows = []
    for student in students:
        base = {
            "student_id": student.id,
            "name": student.name,
            "dob": student.dob,
            "phone": student.phone,
            "guardian_contact": student.guardian_contact,
            "metadata": student.meta,
            "is_active": student.is_active,
        }
        if not student.enrollments:
            rows.append({**base, "enrollment_id": None, "status": None, "batches": []})
            continue
        for enrollment in student.enrollments:
            links = sorted(
                enrollment.batch_links,
                key=lambda link: (link.batch.instrument.name, link.batch.recurrence),
            )
            rows.append(
                {
                    **base,
                    "enrollment_id": enrollment.id,
                    "status": enrollment.status,
                    "classes_remaining": enrollment.classes_remaining,
                    "enrolled_on": enrollment.enrolled_on,
                    "batches": [
                        {
                            "batch_id": link.batch.id,
                            "instrument_id": link.batch.instrument_id,
                            "instrument": link.batch.instrument.name,
                            "batch_recurrence": link.batch.recurrence,
                            "teacher_id": link.batch.teacher_id,
                            "teacher": link.batch.teacher.name if link.batch.teacher else None,
                            "start_time": link.batch.start_time,
                            "end_time": link.batch.end_time,
                            "payment_frequency": link.payment_frequency,
                            "classes_remaining": link.classes_remaining,
                            "enrolled_on": link.enrolled_on or enrollment.enrolled_on,
                        }
                        for link in links
                    ],
                }
            )
    return {"enrollments": rows}


@router.post("/agent/enroll", response_model=AgentReply)
def agent_enroll(message_in: AgentMessage) -> Any:
    """Conversational enrollment: extract form fields from free text."""
    return agent.handle_message(message_in.message, message_in.sessionId)
