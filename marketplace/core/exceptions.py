from fastapi import status
from typing import Any, List, Optional


class APIError(Exception):
    def __init__(self, status_code: int, message: str, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.errors = errors or []


class ValidationFailed(APIError):
    """Malformed or out-of-range input."""

    def __init__(self, message: str, errors: Optional[List[Any]] = None):
        super().__init__(status.HTTP_400_BAD_REQUEST, message, errors)


class NotFound(APIError):
    def __init__(self, message: str = "Resource not found"):
        super().__init__(status.HTTP_404_NOT_FOUND, message)


class Conflict(APIError):
    def __init__(self, message: str):
        super().__init__(status.HTTP_409_CONFLICT, message)


class InternalError(APIError):
    """Storage-layer failure. Never retried."""

    def __init__(self, message: str = "Internal server error"):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, message)


class ItemNotFound(NotFound):
    def __init__(self):
        super().__init__("Item not found")


class UserNotFound(NotFound):
    def __init__(self):
        super().__init__("User not found")


class ReviewNotFound(NotFound):
    def __init__(self):
        super().__init__("Review not found")


class UsernameAlreadyExists(Conflict):
    def __init__(self):
        super().__init__("Username already exists")
