"""Student applications module."""

from schools_api.modules.student_applications.router import router, schools_router

__all__ = ["router", "schools_router"]
