import logging
from datetime import date
from typing import Any, List
from uuid import UUID
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.api import deps
from app.core.database import get_db
from app.core.exceptions import NotFoundError
from app.models.academics import Enrollment, EnrollmentBatch, EnrollmentStatus, StudentEvaluation
from app.models.finance import Payment
from app.models.users import Student, StudentDocument, StudentType
from app.schemas.auth import CurrentUser
from app.schemas.students import (
    DocumentCreate,
    DocumentSummary,
    EvaluationCreate,
    StudentCreate,
    StudentImage,
    StudentResponse,
    StudentUpdate,
)
from app.schemas.finance import PaymentResponse
from app.services import credits, reports

logger = logging.getLogger(__name__)

router = APIRouter()


def get_student_or_404(db: Session, student_id) -> Student:
    student = db.query(Student).filter(Student.id == student_id).first()
    if not student:
        raise NotFoundError("Student")
    return student


def _profile_metadata(current: dict, student_in) -> dict:
    extra = student_in.metadata or {}
    merged = {**(current or {}), **extra}
    merged["email"] = student_in.email or extra.get("email")
    merged["address"] = student_in.address or extra.get("address")
    merged["guardian_name"] = student_in.guardian_name or extra.get("guardian_name")
    merged["guardian_phone"] = student_in.guardian_phone or extra.get("guardian_phone")
    return merged


@router.get("/")
def list_students(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_staff),
) -> Any:
    students = (
        db.query(Student)
        .filter(
            or_(
                Student.student_type == StudentType.permanent.value,
                Student.student_type.is_(None),
            )
        )
        .order_by(Student.name)
        .all()
    )
    return {"students": [StudentResponse.model_validate(s) for s in students]}


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_student(
    student_in: StudentCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    """
    Create a student together with an active enrollment, its batch links and
    an optional first payment, in one transaction.
    """
    meta = _profile_metadata({}, student_in)
    meta["total_credits"] = credits.total_credits_for_batches(
        [
            {
                "instrument_id": b.instrument_id,
                "batch_id": b.batch_id,
                "payment_frequency": b.payment_frequency or "monthly",
            }
            for b in student_in.batches
        ]
    )

    student = Student(
        name=f"{student_in.first_name} {student_in.last_name}",
        dob=student_in.dob,
        phone=student_in.phone,
        guardian_contact=student_in.guardian_name,
        email=student_in.email,
        meta=meta,
        student_type=StudentType.permanent.value,
    )
    db.add(student)
    db.flush()

    enrollment = Enrollment(student_id=student.id, status=EnrollmentStatus.active.value)
    db.add(enrollment)
    db.flush()

    links = []
    for b in student_in.batches:
        initial = b.classes_remaining or credits.initial_batch_credits(b.payment_frequency)
        link = EnrollmentBatch(
            enrollment_id=enrollment.id,
            batch_id=b.batch_id,
            payment_frequency=b.payment_frequency or "monthly",
            classes_remaining=initial,
            enrolled_on=b.enrolled_on or date.today(),
        )
        db.add(link)
        links.append(link)

    payment = None
    if student_in.payment and student_in.payment.amount and student_in.payment.method:
        payment = Payment(
            student_id=student.id,
            package_id=student_in.payment.package_id,
            amount=student_in.payment.amount,
            method=student_in.payment.method,
            transaction_id=student_in.payment.transaction_id,
            meta={},
        )
        db.add(payment)

    db.commit()
    db.refresh(student)
    logger.info(f"Created student {student.id} with {len(links)} batch link(s)")

    return {
        "student": StudentResponse.model_validate(student),
        "enrollment": {
            "id": enrollment.id,
            "student_id": enrollment.student_id,
            "status": enrollment.status,
            "enrolled_on": enrollment.enrolled_on,
        },
        "enrollment_batches": [
            {
                "id": link.id,
                "batch_id": link.batch_id,
                "payment_frequency": link.payment_frequency,
                "classes_remaining": link.classes_remaining,
                "enrolled_on": link.enrolled_on,
            }
            for link in links
        ],
        "payment": PaymentResponse.model_validate(payment) if payment else None,
    }


@router.get("/email/{email}/360")
def get_student_360_by_email(
    email: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_family),
) -> Any:
    student = reports.find_student_by_email(db, email)
    if not student:
        raise NotFoundError("Student")
    deps.verify_student_access(db, current_user, student.id)
    return reports.student_360(db, student)


@router.put("/{student_id}")
def update_student(
    student_id: UUID,
    student_in: StudentUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    student = get_student_or_404(db, student_id)
    student.name = f"{student_in.first_name} {student_in.last_name}"
    student.dob = student_in.dob
    student.phone = student_in.phone
    student.guardian_contact = student_in.guardian_name
    student.email = student_in.email
    # Reassign so the JSON column is flagged dirty
    student.meta = _profile_metadata(student.meta, student_in)
    db.commit()
    db.refresh(student)
    return {"student": StudentResponse.model_validate(student)}


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_student(
    student_id: UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Response:
    """Soft delete: deactivate, drop batch links and complete enrollments."""
    student = get_student_or_404(db, student_id)
    student.is_active = False
    enrollments = db.query(Enrollment).filter(Enrollment.student_id == student.id).all()
    for enrollment in enrollments:
        for link in list(enrollment.batch_links):
            db.delete(link)
        enrollment.status = EnrollmentStatus.completed.value
    db.commit()
    logger.info(f"Student {student_id} deactivated by {current_user.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{student_id}/restore")
def restore_student(
    student_id: UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    student = get_student_or_404(db, student_id)
    student.is_active = True
    db.query(Enrollment).filter(Enrollment.student_id == student.id).update(
        {Enrollment.status: EnrollmentStatus.active.value}, synchronize_session=False
    )
    db.commit()
    db.refresh(student)
    return {"message": "Student restored successfully", "student": StudentResponse.model_validate(student)}


@router.post("/{student_id}/image")
def upload_student_image(
    student_id: UUID,
    image_in: StudentImage,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    student = get_student_or_404(db, student_id)
    student.meta = {**(student.meta or {}), "image": image_in.image}
    db.commit()
    return {"ok": True, "studentId": student.id, "message": "Image uploaded successfully"}


@router.get("/{student_id}/360")
def get_student_360(
    student_id: UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_family),
) -> Any:
    deps.verify_student_access(db, current_user, student_id)
    student = get_student_or_404(db, student_id)
    return reports.student_360(db, student)


# --- Evaluations ---


@router.get("/{student_id}/evaluations")
def list_evaluations(
    student_id: UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.get_current_user),
) -> Any:
    if not current_user.has_role("teacher"):
        deps.verify_student_access(db, current_user, student_id)
    evaluations = (
        db.query(StudentEvaluation)
        .filter(StudentEvaluation.student_id == student_id)
        .order_by(StudentEvaluation.evaluation_date.desc(), StudentEvaluation.created_at.desc())
        .all()
    )
    return {"evaluations": [reports.evaluation_to_dict(e) for e in evaluations]}


@router.post("/{student_id}/evaluations", status_code=status.HTTP_201_CREATED)
def create_evaluation(
    student_id: UUID,
    evaluation_in: EvaluationCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_staff),
) -> Any:
    get_student_or_404(db, student_id)
    if evaluation_in.batch_id:
        deps.verify_batch_ownership(db, current_user, evaluation_in.batch_id)

    data = evaluation_in.model_dump(exclude_none=True)
    evaluation = StudentEvaluation(student_id=student_id, **data)
    db.add(evaluation)
    db.commit()
    db.refresh(evaluation)
    return {"evaluation": reports.evaluation_to_dict(evaluation)}


# --- Documents ---


@router.get("/{student_id}/documents")
def list_documents(
    student_id: UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    documents: List[StudentDocument] = (
        db.query(StudentDocument)
        .filter(StudentDocument.student_id == student_id)
        .order_by(StudentDocument.uploaded_at.desc())
        .all()
    )
    return {"documents": [DocumentSummary.model_validate(d) for d in documents]}


@router.post("/{student_id}/documents", status_code=status.HTTP_201_CREATED)
def upload_document(
    student_id: UUID,
    document_in: DocumentCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    get_student_or_404(db, student_id)
    document = StudentDocument(student_id=student_id, **document_in.model_dump())
    db.add(document)
    db.commit()
    db.refresh(document)
    return {
        "document": DocumentSummary.model_validate(document),
        "message": "Document uploaded successfully",
    }
