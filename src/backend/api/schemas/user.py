"""
User schemas shared by grant, signaling and chat responses.
"""

from typing import Optional

from core.schema_base import HTTPSchemaModel


class UserSummary(HTTPSchemaModel):
    """Minimal user info shown next to grants, peers and messages."""

    id: int
    username: str
    full_name: Optional[str] = None
    email: Optional[str] = None
