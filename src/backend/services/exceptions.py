"""
Business exceptions raised by the service layer.

They subclass the builtin families the database decorators treat as
expected rejections (ValueError, LookupError, PermissionError), so they
are logged at info level and re-raised unchanged for the endpoints to map.
"""


class NotFoundError(LookupError):
    """Raised when a requested record does not exist or is not visible to the caller."""

    def __init__(self, message: str = "Not found"):
        self.message = message
        super().__init__(message)


class FieldValidationError(ValueError):
    """Business validation failure attached to one request field."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class AccessGrantValidationError(FieldValidationError):
    """Field-level business validation failure on an access grant."""


class MeetingAccessDeniedError(PermissionError):
    """Raised when a user acts on a meeting or session they do not belong to."""

    def __init__(self, message: str = "Unauthorized for this meeting"):
        self.message = message
        super().__init__(message)
