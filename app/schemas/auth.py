from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel


class TokenPayload(BaseModel):
    sub: Optional[str] = None
    email: Optional[str] = None
    roles: List[str] = []
    type: Optional[str] = None


class RefreshTokenRequest(BaseModel):
    refresh_token: Optional[str] = None


class AccessTokenResponse(BaseModel):
    accessToken: str
    message: str = "Token refreshed successfully"


class CurrentUser(BaseModel):
    """The authenticated principal, with roles re-read on every request."""

    id: UUID
    email: Optional[str] = None
    name: Optional[str] = None
    roles: List[str] = []

    def has_role(self, *roles: str) -> bool:
        return any(r in self.roles for r in roles)

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles


class LinkTeacherRequest(BaseModel):
    user_id: UUID
    teacher_id: UUID


class LinkStudentRequest(BaseModel):
    user_id: UUID
    student_id: UUID
    relationship: str
