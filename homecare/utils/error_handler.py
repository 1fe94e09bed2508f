import logging
from typing import Dict, Optional, Tuple

from homecare.core.constants import NotificationTypeEnum
from homecare.core.exceptions import ApiError, SubmissionError
from homecare.schemas.response import ErrorNotification

logger = logging.getLogger(__name__)

UNEXPECTED_MESSAGE = "An unexpected error occurred."

# status -> (title, fixed message or None to use the error's own, type)
_NOTIFICATIONS: Dict[int, Tuple[str, Optional[str], NotificationTypeEnum]] = {
    400: ("Invalid Request", None, NotificationTypeEnum.ERROR),
    401: ("Authentication Required", None, NotificationTypeEnum.WARNING),
    403: ("Access Denied", "You do not have permission to perform this action.", NotificationTypeEnum.ERROR),
    404: ("Not Found", None, NotificationTypeEnum.ERROR),
    409: ("Conflict", None, NotificationTypeEnum.WARNING),
    422: ("Validation Error", None, NotificationTypeEnum.ERROR),
    429: ("Too Many Requests", None, NotificationTypeEnum.WARNING),
    500: ("Server Error", "Something went wrong on our end. Please try again later.", NotificationTypeEnum.ERROR),
    503: (
        "Service Unavailable",
        "The service is temporarily unavailable. Please try again later.",
        NotificationTypeEnum.WARNING,
    ),
}


def get_error_message(error: object) -> str:
    if isinstance(error, ApiError):
        return error.message
    if isinstance(error, Exception):
        return str(error) or UNEXPECTED_MESSAGE
    if isinstance(error, str):
        return error
    return UNEXPECTED_MESSAGE


def get_error_notification(error: object) -> ErrorNotification:
    if isinstance(error, ApiError):
        title, fixed_message, kind = _NOTIFICATIONS.get(
            error.status_code, ("Error", None, NotificationTypeEnum.ERROR)
        )
        if isinstance(error, SubmissionError):
            title = "Unable to submit exam"
        return ErrorNotification(title=title, message=fixed_message or error.message or UNEXPECTED_MESSAGE, type=kind)

    if isinstance(error, Exception):
        return ErrorNotification(title="Error", message=str(error) or UNEXPECTED_MESSAGE)
    return ErrorNotification(title="Error", message=UNEXPECTED_MESSAGE)


def is_network_error(error: object) -> bool:
    return isinstance(error, ApiError) and error.status_code == 0


def is_validation_error(error: object) -> bool:
    return isinstance(error, ApiError) and error.status_code in (400, 422)


def is_auth_error(error: object) -> bool:
    return isinstance(error, ApiError) and error.status_code in (401, 403)


def should_retry(error: object) -> bool:
    return isinstance(error, ApiError) and (error.status_code >= 500 or error.status_code == 429)


def log_error(error: object, context: Optional[str] = None):
    message = get_error_message(error)
    logger.error(f"[{context}] {message}" if context else message)


def handle_api_error(error: object, context: Optional[str] = None,
                     title: Optional[str] = None) -> ErrorNotification:
    log_error(error, context)
    notification = get_error_notification(error)
    if title:
        notification.title = title
    return notification
