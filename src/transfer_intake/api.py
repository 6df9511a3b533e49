from fastapi import APIRouter

from transfer_intake.modules.auth import router as auth_router
from transfer_intake.modules.submissions import admin_router as admin_submissions_router
from transfer_intake.modules.submissions import router as submissions_router

api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["Authentication"])

api_router.include_router(submissions_router, prefix="/submissions", tags=["Submissions"])

api_router.include_router(
    admin_submissions_router,
    prefix="/admin/submissions",
    tags=["Admin - Submissions"],
)
