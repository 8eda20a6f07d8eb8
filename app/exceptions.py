"""HTTP-facing exceptions and dispatch errors."""

from fastapi import HTTPException, status


class UnauthorizedException(HTTPException):
    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class ForbiddenException(HTTPException):
    def __init__(self, detail: str = "Forbidden"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class NotFoundException(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ValidationException(HTTPException):
    def __init__(self, detail: str = "Invalid request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class PushTransportError(Exception):
    """The push gateway could not be reached or is not configured."""


class DispatchError(Exception):
    """A send to one user failed before any per-token outcome was known."""

    def __init__(self, user_id: str, message: str):
        super().__init__(f"Failed to send push notification to {user_id}: {message}")
        self.user_id = user_id
