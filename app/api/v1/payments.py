import logging
from datetime import datetime
from typing import Any, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.api import deps
from app.core.database import get_db
from app.core.exceptions import NotFoundError
from app.models.academics import Batch, Enrollment, EnrollmentBatch, EnrollmentStatus
from app.models.finance import Package, Payment
from app.models.users import Student
from app.schemas.auth import CurrentUser
from app.schemas.finance import PaymentCreate, PaymentResponse, PaymentUpdate
from app.services import credits

logger = logging.getLogger(__name__)

router = APIRouter()


def _student_links(db: Session, student_id, batch_id=None, active_only: bool = False):
    query = (
        db.query(EnrollmentBatch)
        .join(Enrollment, Enrollment.id == EnrollmentBatch.enrollment_id)
        .filter(Enrollment.student_id == student_id)
    )
    if batch_id:
        query = query.filter(EnrollmentBatch.batch_id == batch_id)
    if active_only:
        query = query.filter(Enrollment.status == EnrollmentStatus.active.value)
    return query


@router.get("/")
def list_payments(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    payments = db.query(Payment).order_by(Payment.timestamp.desc()).all()
    return {"payments": [PaymentResponse.model_validate(p) for p in payments]}


@router.get("/status/{student_id}")
def get_payment_status(
    student_id: UUID,
    batch_id: Optional[UUID] = None,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    """
    Last payment, remaining credits and the next expected payment date for a
    student, optionally narrowed to one batch (and its instrument).
    """
    instrument_id = None
    if batch_id:
        batch = db.query(Batch).filter(Batch.id == batch_id).first()
        instrument_id = batch.instrument_id if batch else None

    query = (
        db.query(Payment, Package)
        .outerjoin(Package, Package.id == Payment.package_id)
        .filter(Payment.student_id == student_id)
    )
    if instrument_id:
        query = query.filter(
            or_(Package.instrument_id == instrument_id, Package.instrument_id.is_(None))
        )
    row = query.order_by(Payment.timestamp.desc()).first()

    if batch_id:
        link = _student_links(db, student_id, batch_id).first()
        classes_remaining = link.classes_remaining if link else 0
    else:
        classes_remaining = (
            db.query(func.sum(EnrollmentBatch.classes_remaining))
            .join(Enrollment, Enrollment.id == EnrollmentBatch.enrollment_id)
            .filter(Enrollment.student_id == student_id)
            .scalar()
        )

    last_payment = None
    expected_start = None
    if row:
        payment, package = row
        last_payment = PaymentResponse.model_validate(payment).model_dump(mode="json")
        last_payment["package_name"] = package.name if package else None
        last_payment["classes_count"] = package.classes_count if package else None
        frequency = credits.infer_payment_frequency(payment.meta, last_payment["package_name"])
        expected_start = credits.next_payment_date(payment.timestamp, frequency)

    return {
        "last_payment": last_payment,
        "classes_remaining": int(classes_remaining or 0),
        "expected_start_date": expected_start,
        "is_overdue": credits.is_overdue(expected_start),
    }


@router.post("/", status_code=status.HTTP_201_CREATED)
def record_payment(
    payment_in: PaymentCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    student = db.query(Student).filter(Student.id == payment_in.student_id).first()
    if not student:
        raise NotFoundError("Student")

    credits_to_add = int(payment_in.class_credits or 0)
    target_batch_id = payment_in.batch_id

    if credits_to_add and not target_batch_id:
        links = _student_links(db, student.id, active_only=True).all()
        if len(links) == 1:
            target_batch_id = links[0].batch_id
            logger.info(f"Auto-detected batch {target_batch_id} for student {student.id}")

    payment = Payment(
        student_id=student.id,
        amount=payment_in.amount,
        method=payment_in.payment_method,
        meta={
            "payment_for": payment_in.payment_for,
            "notes": payment_in.notes,
            "payment_frequency": payment_in.payment_frequency,
            "credits_bought": credits_to_add,
        },
        timestamp=payment_in.payment_date or datetime.utcnow(),
    )
    db.add(payment)

    if credits_to_add:
        meta = dict(student.meta or {})
        meta["total_credits"] = int(meta.get("total_credits") or 0) + credits_to_add
        student.meta = meta

        if target_batch_id:
            link = _student_links(db, student.id, target_batch_id).first()
            if link:
                link.classes_remaining = (link.classes_remaining or 0) + credits_to_add
                logger.info(
                    f"Batch {target_batch_id} credits for student {student.id} now {link.classes_remaining}"
                )

    db.commit()
    db.refresh(payment)
    return {
        "payment": PaymentResponse.model_validate(payment),
        "message": "Payment recorded successfully",
    }


@router.put("/{payment_id}")
def update_payment(
    payment_id: UUID,
    payment_in: PaymentUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    payment = db.query(Payment).filter(Payment.id == payment_id).first()
    if not payment:
        raise NotFoundError("Payment")

    changes = payment_in.model_dump(exclude_unset=True)
    meta = dict(payment.meta or {})
    for key in ("notes", "payment_for"):
        if key in changes:
            meta[key] = changes[key]
    payment.meta = meta
    if payment_in.payment_date:
        payment.timestamp = payment_in.payment_date
    if payment_in.payment_method:
        payment.method = payment_in.payment_method

    db.commit()
    db.refresh(payment)
    return {
        "payment": PaymentResponse.model_validate(payment),
        "message": "Payment updated successfully",
    }
