"""Authentication module."""

from transfer_intake.modules.auth.router import router
from transfer_intake.modules.auth.schemas import LoginRequest, LoginResponse

__all__ = ["router", "LoginRequest", "LoginResponse"]
