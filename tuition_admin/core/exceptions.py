"""
Service-layer errors.

Each error knows the HTTP status it maps to; the handlers in main.py turn
them into the standard {success, message, ...} envelope.
"""

from typing import Dict, List, Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(ServiceError):
    """Malformed or out-of-range input. Never reaches the store."""

    def __init__(self, errors: List[Dict[str, str]], message: str = "Validation failed") -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)
        self.errors = errors


class NotFoundError(ServiceError):
    def __init__(self, message: str = "Student not found") -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class ConflictError(ServiceError):
    def __init__(self, message: str = "Student with this email already exists") -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class InternalError(ServiceError):
    """Store/runtime failure. `detail` is only shown outside production."""

    def __init__(self, message: str, detail: Optional[str] = None) -> None:
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.detail = detail
