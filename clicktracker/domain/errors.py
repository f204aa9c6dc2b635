"""Error taxonomy for the click tracker.

Every error carries an explicit ErrorKind chosen where it is raised, so the
HTTP and CLI layers never have to guess the category from message text.
"""

from enum import Enum
from typing import Iterable, List, Optional


class ErrorKind(str, Enum):
    MISSING_PARAMETER = "missing_parameter"
    NOT_FOUND = "not_found"
    AUTHENTICATION = "authentication"
    RATE_LIMITED = "rate_limited"
    UPSTREAM = "upstream"
    INTERNAL = "internal"


class ClickTrackerError(Exception):
    """Base class for errors raised by the click tracker."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class ApiError(ClickTrackerError):
    """A failed call to the CRM API.

    Args:
        message: CRM-provided message, or the HTTP status line.
        status: HTTP status code (503/504 for transport failures).
        code: CRM-provided error code, or a synthesized ``HTTP_<status>``.
    """

    def __init__(self, message: str, status: int, code: Optional[str] = None):
        kind = ErrorKind.AUTHENTICATION if status == 401 else ErrorKind.UPSTREAM
        super().__init__(message, kind=kind)
        self.status = status
        self.code = code or f"HTTP_{status}"

    @property
    def is_auth_error(self) -> bool:
        return self.status == 401

    def __repr__(self) -> str:
        return f"ApiError(status={self.status}, code={self.code!r}, message={self.message!r})"


class RateLimitExceededError(ClickTrackerError):
    """Raised before any network call when the limiter denies admission."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(self, wait_time: float):
        self.wait_time = wait_time
        super().__init__(f"Rate limit exceeded. Wait {round(wait_time * 1000)}ms")


class FieldNotFoundError(ClickTrackerError):
    """No custom field definition matches the requested field key."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, field_name: str, available_fields: Iterable[str]):
        self.field_name = field_name
        self.available_fields: List[str] = list(available_fields)
        super().__init__(
            f'Custom field "{field_name}" not found. '
            f"Available fields: {', '.join(self.available_fields)}"
        )


class ContactNotFoundError(ClickTrackerError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, contact_id: str):
        self.contact_id = contact_id
        super().__init__(f"No contact found with ID: {contact_id}")


class MissingParameterError(ClickTrackerError):
    kind = ErrorKind.MISSING_PARAMETER

    def __init__(self, parameter: str, hint: Optional[str] = None):
        self.parameter = parameter
        self.hint = hint
        super().__init__(f"Missing required parameter: {parameter}")
