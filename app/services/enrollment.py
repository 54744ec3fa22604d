"""
Public enrollment form: validation, catalogue lookup and the writes that turn
one submission into a student with an enrollment, batch links and pending
payments.
"""
import logging
import re
import uuid
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.exceptions import BadRequestError, UnprocessableError
from app.models.academics import Batch, Enrollment, EnrollmentBatch, EnrollmentStatus, Instrument
from app.models.finance import Package, Payment
from app.models.users import Student, StudentType
from app.schemas.academics import EnrollmentAnswers
from app.services.enrollment_agent import PAYMENT_OPTIONS

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")
TELEPHONE_PATTERN = re.compile(
    r"^\+?[1-9]\d{0,2}[\s-]?\(?\d{1,4}\)?[\s-]?\d{1,4}[\s-]?\d{1,4}[\s-]?\d{1,9}$"
)
PENDING_METHOD = "pending"


def validate_answers(answers: EnrollmentAnswers) -> List[Tuple[str, str, str]]:
    """Check the submission and return its streams as (instrument, batch, payment)."""
    required = [
        answers.firstName,
        answers.lastName,
        answers.email,
        answers.dob,
        answers.address,
        answers.guardianName,
        answers.telephone,
        answers.dateOfJoining,
    ]
    if not all(required) or not answers.streams:
        raise UnprocessableError("missing required fields")
    if not EMAIL_PATTERN.match(answers.email):
        raise UnprocessableError("invalid email")
    if not TELEPHONE_PATTERN.match(answers.telephone):
        raise UnprocessableError("invalid telephone number")

    streams = []
    for stream in answers.streams:
        if stream is None or not isinstance(stream.instrument, str):
            raise UnprocessableError("invalid stream object")
        if not stream.batch or not isinstance(stream.batch, str):
            raise UnprocessableError("invalid batch")
        if stream.payment not in PAYMENT_OPTIONS:
            raise UnprocessableError("invalid payment option")
        streams.append((stream.instrument.strip(), stream.batch.strip(), stream.payment))
    return streams


def _as_uuid(value: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(value)
    except ValueError:
        return None


class InstrumentResolver:
    """Looks instruments up by id, exact name, then partial name, caching hits."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self._cache: Dict[str, Instrument] = {}

    def resolve(self, raw: str) -> Instrument:
        name = (raw or "").strip()
        key = name.lower()
        if key in self._cache:
            return self._cache[key]

        instrument = None
        instrument_id = _as_uuid(name)
        if instrument_id:
            instrument = self.db.query(Instrument).filter(Instrument.id == instrument_id).first()
        if not instrument:
            instrument = (
                self.db.query(Instrument).filter(func.lower(Instrument.name) == key).first()
            )
        if not instrument:
            instrument = self.db.query(Instrument).filter(Instrument.name.ilike(f"%{name}%")).first()
        if not instrument:
            logger.error(f"Instrument lookup failed for '{name}' (id, exact, partial)")
            raise BadRequestError(f"Instrument not found: {name}")

        self._cache[key] = instrument
        return instrument


def _find_package(db: Session, instrument: Instrument, payment_type: str) -> Package:
    package = (
        db.query(Package)
        .filter(Package.instrument_id == instrument.id, Package.name.ilike(f"%{payment_type}%"))
        .first()
    )
    if not package:
        raise BadRequestError(f"Package not found for: {instrument.name} - {payment_type}")
    return package


def _find_batch(db: Session, instrument: Instrument, recurrence: str) -> Batch:
    batch = (
        db.query(Batch)
        .filter(Batch.instrument_id == instrument.id, Batch.recurrence.ilike(f"%{recurrence}%"))
        .first()
    )
    if not batch:
        raise BadRequestError(
            f"Batch not found for {instrument.name} with recurrence: {recurrence}"
        )
    return batch


def register_enrollment(db: Session, answers: EnrollmentAnswers) -> Tuple[Student, Enrollment]:
    """
    Store a validated form submission. Nothing is committed here; any lookup
    failure leaves the caller to roll the whole submission back.
    """
    streams = validate_answers(answers)
    resolver = InstrumentResolver(db)

    student = Student(
        name=f"{answers.firstName.strip()} {answers.lastName.strip()}",
        dob=answers.dob,
        phone=answers.telephone,
        guardian_contact=answers.guardianName,
        email=answers.email,
        meta={"email": answers.email, "address": answers.address},
        student_type=StudentType.permanent.value,
    )
    db.add(student)
    db.flush()

    # One enrollment per student, keyed to the first instrument
    enrollment = Enrollment(
        student_id=student.id,
        instrument_id=resolver.resolve(streams[0][0]).id,
        status=EnrollmentStatus.active.value,
        classes_remaining=0,
        enrolled_on=answers.dateOfJoining,
    )
    db.add(enrollment)
    db.flush()

    total_classes = 0
    for instrument_name, recurrence, payment_type in streams:
        instrument = resolver.resolve(instrument_name)
        package = _find_package(db, instrument, payment_type)
        batch = _find_batch(db, instrument, recurrence)
        total_classes += package.classes_count or 0

        db.add(
            EnrollmentBatch(
                enrollment_id=enrollment.id,
                batch_id=batch.id,
                classes_remaining=package.classes_count,
                payment_frequency=payment_type,
                enrolled_on=answers.dateOfJoining,
            )
        )
        db.add(
            Payment(
                student_id=student.id,
                package_id=package.id,
                amount=package.price,
                method=PENDING_METHOD,
                meta={"instrument": instrument_name, "payment_type": payment_type},
            )
        )

    enrollment.classes_remaining = total_classes
    student.meta = {**student.meta, "total_credits": total_classes}
    db.flush()
    logger.info(
        f"Enrollment {enrollment.id} for student {student.id}: "
        f"{len(streams)} stream(s), {total_classes} classes"
    )
    return student, enrollment

