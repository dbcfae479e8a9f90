from typing import List, Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        errors: Optional[List[str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.errors = errors


class ValidationError(ServiceError):
    def __init__(self, message: str, errors: Optional[List[str]] = None) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST, errors)


class ConflictError(ServiceError):
    """Duplicate email, duplicate recurring fee and similar uniqueness clashes.

    Reported as 400 to match what clients of the API already handle.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class UnauthorizedError(ServiceError):
    def __init__(self, message: str = "Not authorized") -> None:
        super().__init__(message, status.HTTP_401_UNAUTHORIZED)


class ForbiddenError(ServiceError):
    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class NotFoundError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)
