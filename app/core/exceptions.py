"""Custom exceptions for the music school API."""
from typing import Any, Dict, Optional

from fastapi import HTTPException


class SchoolAPIException(HTTPException):
    """Base exception for the application."""

    def __init__(
        self,
        status_code: int,
        detail: Any,
        headers: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class NotFoundError(SchoolAPIException):
    def __init__(self, resource: str):
        super().__init__(status_code=404, detail=f"{resource} not found")


class BadRequestError(SchoolAPIException):
    def __init__(self, message: str):
        super().__init__(status_code=400, detail=message)


class AuthenticationError(SchoolAPIException):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            status_code=401,
            detail=message,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AccessDenied(SchoolAPIException):
    def __init__(self, message: str = "Access denied"):
        super().__init__(status_code=403, detail=message)


class UnprocessableError(SchoolAPIException):
    def __init__(self, message: str):
        super().__init__(status_code=422, detail=message)
