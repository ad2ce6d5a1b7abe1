from fastapi import APIRouter

from schools_api.modules.auth import router as auth_router
from schools_api.modules.student_applications import router as applications_router
from schools_api.modules.student_applications import schools_router

api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["Authentication"])

api_router.include_router(
    applications_router, prefix="/applications", tags=["Student Applications"]
)

api_router.include_router(
    schools_router,
    prefix="/schools",
    tags=["Student Applications"],
)
