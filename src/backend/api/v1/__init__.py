"""
API v1 routes.
"""

from fastapi import APIRouter

from .endpoints import incident_report_access, meeting_messages, webrtc

api_router = APIRouter()

# Access grants
api_router.include_router(
    incident_report_access.router,
    prefix="/incident-report-access",
    tags=["Incident Report Access"],
)

# Meetings
api_router.include_router(webrtc.router, tags=["WebRTC"])
api_router.include_router(meeting_messages.router, tags=["Meeting Messages"])

__all__ = ["api_router"]
