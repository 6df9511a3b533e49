"""
Authentication and Authorization Module

Provides authentication dependencies for the admin endpoints.
Handles JWT validation using the utilities in security.py and confirms
that the token's subject is still an active admin account.
"""

import logging
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from transfer_intake.core.database import get_db
from transfer_intake.core.security import decode_token
from transfer_intake.modules.admins.models import AdminUser
from transfer_intake.modules.admins.repository import AdminUserRepository

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI documentation
security = HTTPBearer(
    auto_error=False,
    description="JWT Bearer token for admin authentication",
)


def _unauthorized(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": code, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _subject_from_token(token: str) -> UUID:
    """
    Validate a JWT and return its subject.

    Raises:
        HTTPException 401: If the token is invalid, expired, not an access
            token, or carries no usable subject
    """
    payload = decode_token(token)

    if payload is None:
        logger.warning("Invalid or expired JWT token")
        raise _unauthorized("INVALID_TOKEN", "Invalid or expired authentication token.")

    token_type = payload.get("type", "access")
    if token_type != "access":
        logger.warning(f"Invalid token type: {token_type}")
        raise _unauthorized("INVALID_TOKEN_TYPE", "This endpoint requires an access token.")

    try:
        return UUID(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Invalid token claims: {e}")
        raise _unauthorized(
            "INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims."
        ) from e


async def get_current_admin_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> AdminUser:
    """
    FastAPI dependency that validates the bearer token and returns the admin.

    Usage:
        @router.get("/admin/endpoint")
        async def admin_endpoint(admin: AdminUser = Depends(get_current_admin_user)):
            ...

    Raises:
        HTTPException 401: If the token is missing, invalid or expired
        HTTPException 403: If the account no longer exists or is inactive
    """
    if credentials is None:
        raise _unauthorized("NOT_AUTHENTICATED", "Authentication is required.")

    admin_id = _subject_from_token(credentials.credentials)
    admin = await AdminUserRepository.get_by_id(db, admin_id)

    if admin is None or not admin.active:
        logger.warning(f"Access denied for admin {admin_id}: account missing or inactive")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "code": "ADMIN_ACCESS_REQUIRED",
                "message": "An active admin account is required for this endpoint.",
            },
        )

    logger.debug(f"Authenticated admin: {admin.id}")
    return admin


__all__ = ["get_current_admin_user"]
