"""
HTTP error mapping for service-layer exceptions.
"""

from fastapi import HTTPException, status

from services.exceptions import (
    FieldValidationError,
    MeetingAccessDeniedError,
    NotFoundError,
)


def field_validation_http_error(exc: FieldValidationError) -> HTTPException:
    """422 shaped like FastAPI's own request validation errors."""
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=[
            {
                "loc": ["body", exc.field],
                "msg": exc.message,
                "type": "value_error",
            }
        ],
    )


def not_found_http_error(exc: NotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)


def access_denied_http_error(exc: MeetingAccessDeniedError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.message)
