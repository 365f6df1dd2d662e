"""
Base schema model for API requests and responses.

Field names stay snake_case on the wire. Datetimes are stored as naive
UTC: incoming aware values are normalized, outgoing values carry a 'Z'.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, field_serializer


def to_naive_utc(dt: datetime | None) -> datetime | None:
    """
    Normalize a datetime to naive UTC for storage.

    Aware datetimes are converted to UTC; naive ones are assumed to be UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def serialize_datetime(dt: datetime | None) -> str | None:
    """
    Serialize datetime to ISO 8601 format with UTC timezone indicator.

    Returns:
        ISO 8601 string with 'Z' suffix (e.g., "2025-12-18T14:30:00Z")
        or None if input is None
    """
    if dt is None:
        return None
    return to_naive_utc(dt).isoformat() + "Z"


class HTTPSchemaModel(BaseModel):
    """
    Base model for all HTTP API schemas.

    Provides:
    - Automatic conversion from ORM models (from_attributes=True)
    - Consistent datetime serialization with UTC timezone indicator ('Z' suffix)

    All schema models should inherit from this class instead of BaseModel.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )

    @field_serializer("*", mode="wrap", when_used="json")
    @classmethod
    def serialize_any_datetime(cls, value: Any, handler: Any) -> Any:
        """
        Wrap-mode serializer: datetimes get the 'Z' suffix, everything else
        goes to the default handler.

        JSON output only; model_dump() keeps datetime objects so request
        models can be handed to services unchanged.
        """
        if isinstance(value, datetime):
            return serialize_datetime(value)
        return handler(value)
