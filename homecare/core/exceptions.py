from typing import List, Optional


class ApiError(Exception):
    """Base error for every failed backend call or rejected portal action."""
    status_code: int = 0
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None,
                 errors: Optional[List[str]] = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.errors = errors or []
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code}, message={self.message!r})"


class NetworkError(ApiError):
    status_code = 0
    default_message = "Network error - please check your connection"


class ValidationError(ApiError):
    status_code = 422
    default_message = "Please check your input and try again."


class AuthError(ApiError):
    status_code = 401
    default_message = "Please log in to continue."


class NotFoundError(ApiError):
    status_code = 404
    default_message = "The requested resource was not found."


class ConflictError(ApiError):
    status_code = 409
    default_message = "This action conflicts with existing data."


class RateLimitError(ApiError):
    status_code = 429
    default_message = "Please wait a moment before trying again."


class ServerError(ApiError):
    status_code = 500
    default_message = "Something went wrong on our end. Please try again later."


class InvalidStateError(ApiError):
    status_code = 409
    default_message = "This action is not allowed in the current state."


class SubmissionError(ApiError):
    default_message = "Unable to submit exam. Please try again later."

    def __init__(self, message: Optional[str] = None, cause: Optional[ApiError] = None):
        self.cause = cause
        status_code = cause.status_code if cause is not None else 0
        errors = cause.errors if cause is not None else None
        super().__init__(message or (cause.message if cause else None), status_code, errors)


def error_for_status(status_code: int, message: Optional[str] = None,
                     errors: Optional[List[str]] = None) -> ApiError:
    if status_code in (400, 422):
        return ValidationError(message, status_code, errors)
    if status_code in (401, 403):
        return AuthError(message, status_code, errors)
    if status_code == 404:
        return NotFoundError(message, status_code, errors)
    if status_code == 409:
        return ConflictError(message, status_code, errors)
    if status_code == 429:
        return RateLimitError(message, status_code, errors)
    if status_code >= 500:
        return ServerError(message, status_code, errors)
    if status_code == 0:
        return NetworkError(message, 0, errors)
    return ApiError(message, status_code, errors)
