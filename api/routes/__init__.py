"""
API Routes Package

This package contains route handlers organized by feature:
- enrollment.py: Enroll and re-enroll endpoints
- authentication.py: Face authentication endpoint
- management.py: Status, disable and audit log endpoints
"""

from api.routes.enrollment import router as enrollment_router
from api.routes.authentication import router as authentication_router
from api.routes.management import router as management_router

__all__ = [
    "enrollment_router",
    "authentication_router",
    "management_router",
]
