"""
HTTP Exceptions
Errors raised by the API layer after translating workflow failures
Source: https://fastapi.tiangolo.com/tutorial/handling-errors/
"""

from typing import Any

from fastapi import HTTPException, status


class AuthenticationError(HTTPException):
    """Raised when the acting role cannot be resolved"""

    def __init__(self, detail: str = "Could not resolve acting role"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
        )


class PermissionDeniedError(HTTPException):
    """Raised when the acting role may not edit the reimbursement"""

    def __init__(self, detail: str = "Permission denied"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
        )


class NotFoundError(HTTPException):
    """Raised when resource not found"""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
        )


class ValidationError(HTTPException):
    """Raised when an update payload is refused"""

    def __init__(self, detail: Any = "Validation error"):
        super().__init__(
            status_code=422,
            detail=detail,
        )


class ConflictError(HTTPException):
    """Raised when the event is not allowed or the row changed concurrently"""

    def __init__(self, detail: str = "Resource conflict"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )
