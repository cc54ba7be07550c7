"""
API Routes Package

This package contains route handlers organized by feature:
- face_recognition.py: identity registry and face verification endpoints
- devices.py: device listing and toggling
"""

from api.routes.face_recognition import router as face_recognition_router
from api.routes.devices import router as devices_router

__all__ = [
    "face_recognition_router",
    "devices_router",
]
