from typing import Any
from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api import deps
from app.core.database import get_db
from app.core.exceptions import NotFoundError
from app.models.users import StudentDocument
from app.schemas.auth import CurrentUser
from app.schemas.students import DocumentResponse
from app.services import reports

router = APIRouter()


@router.get("/documents/{document_id}", response_model=DocumentResponse)
def get_document(
    document_id: UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    document = db.query(StudentDocument).filter(StudentDocument.id == document_id).first()
    if not document:
        raise NotFoundError("Document")
    return document


@router.delete("/documents/{document_id}")
def delete_document(
    document_id: UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    document = db.query(StudentDocument).filter(StudentDocument.id == document_id).first()
    if not document:
        raise NotFoundError("Document")
    db.delete(document)
    db.commit()
    return {"message": "Document deleted successfully"}


@router.get("/portal/student/{email}")
def student_portal(
    email: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_family),
) -> Any:
    """360 view of a student looked up by email, for the family portal."""
    student = reports.find_student_by_email(db, email)
    if not student:
        raise NotFoundError("Student")
    deps.verify_student_access(db, current_user, student.id)
    return reports.student_360(db, student)
