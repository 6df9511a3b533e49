"""Transfer intake submissions module."""

from transfer_intake.modules.submissions.admin_router import router as admin_router
from transfer_intake.modules.submissions.router import router

__all__ = ["router", "admin_router"]
