import logging
from typing import Any
from uuid import UUID
from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from app.api import deps
from app.core.database import get_db
from app.core.exceptions import BadRequestError, NotFoundError
from app.models.communication import ProspectNote
from app.models.users import Student, StudentType
from app.schemas.auth import CurrentUser
from app.schemas.communication import (
    ProspectCreate,
    ProspectNoteCreate,
    ProspectNoteResponse,
    ProspectUpdate,
)
from app.schemas.students import StudentResponse
from app.services import notifier
from app.utils.email import send_demo_booking_email

logger = logging.getLogger(__name__)

router = APIRouter()


def get_prospect_or_404(db: Session, prospect_id) -> Student:
    prospect = (
        db.query(Student)
        .filter(Student.id == prospect_id, Student.student_type == StudentType.prospect.value)
        .first()
    )
    if not prospect:
        raise NotFoundError("Prospect")
    return prospect


@router.post("/", status_code=status.HTTP_201_CREATED)
def book_demo(
    prospect_in: ProspectCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
) -> Any:
    """Public demo-class booking from the landing page."""
    if not prospect_in.name or not prospect_in.email or not prospect_in.phone:
        raise BadRequestError("Name, email, and phone are required for a trial booking.")

    prospect = Student(
        name=prospect_in.name,
        phone=prospect_in.phone,
        meta={
            "email": prospect_in.email,
            "address": prospect_in.address,
            "interested_instrument": prospect_in.instrument,
            "lead_source": prospect_in.source,
            "status": "new",
        },
        student_type=StudentType.prospect.value,
        is_active=True,
    )
    db.add(prospect)
    db.commit()
    db.refresh(prospect)
    logger.info(f"Prospect created: {prospect.id}")

    notifier.create_notification(
        db,
        type="NEW_PROSPECT",
        title="New demo class booking",
        message=f"{prospect.name} booked a demo class"
        + (f" for {prospect_in.instrument}" if prospect_in.instrument else ""),
        action_link="/prospects",
        metadata={"prospect_id": str(prospect.id)},
    )
    background_tasks.add_task(
        send_demo_booking_email,
        prospect_in.name,
        prospect_in.email,
        prospect_in.phone,
        prospect_in.instrument,
        prospect_in.source,
    )

    return {
        "message": "Demo class booked successfully!",
        "prospect": StudentResponse.model_validate(prospect),
    }


@router.get("/")
def list_prospects(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    prospects = (
        db.query(Student)
        .filter(
            Student.student_type == StudentType.prospect.value,
            Student.is_active.is_(True),
        )
        .order_by(Student.created_at.desc())
        .all()
    )
    return {"prospects": [StudentResponse.model_validate(p) for p in prospects]}


@router.put("/{prospect_id}")
def update_prospect(
    prospect_id: UUID,
    prospect_in: ProspectUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    prospect = get_prospect_or_404(db, prospect_id)
    if prospect_in.status is not None:
        prospect.meta = {**(prospect.meta or {}), "status": prospect_in.status}
    if prospect_in.is_active is not None:
        prospect.is_active = prospect_in.is_active
    db.commit()
    db.refresh(prospect)
    return {"prospect": StudentResponse.model_validate(prospect)}


@router.get("/{prospect_id}/notes")
def list_prospect_notes(
    prospect_id: UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    get_prospect_or_404(db, prospect_id)
    notes = (
        db.query(ProspectNote)
        .filter(ProspectNote.student_id == prospect_id)
        .order_by(ProspectNote.created_at.desc())
        .all()
    )
    return {"notes": [ProspectNoteResponse.model_validate(n) for n in notes]}


@router.post("/{prospect_id}/notes", status_code=status.HTTP_201_CREATED)
def add_prospect_note(
    prospect_id: UUID,
    note_in: ProspectNoteCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    get_prospect_or_404(db, prospect_id)
    note = ProspectNote(
        student_id=prospect_id,
        note=note_in.note,
        created_by=note_in.created_by or current_user.name or current_user.email,
    )
    db.add(note)
    db.commit()
    db.refresh(note)
    return {"note": ProspectNoteResponse.model_validate(note)}
