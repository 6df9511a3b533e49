"""Authentication router."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from transfer_intake.core.config import settings
from transfer_intake.core.database import get_db
from transfer_intake.core.security import create_access_token, verify_password
from transfer_intake.modules.admins.repository import AdminUserRepository
from transfer_intake.modules.auth.schemas import AdminResponse, LoginRequest, LoginResponse

logger = logging.getLogger(__name__)

router = APIRouter()

INVALID_CREDENTIALS = {
    "code": "INVALID_CREDENTIALS",
    "message": "Invalid email or password.",
}


@router.post("/login", response_model=LoginResponse, response_model_by_alias=True)
async def login(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """
    Authenticate an admin and return an access token.

    Raises:
        HTTPException 401: Invalid credentials
        HTTPException 403: Account inactive
    """
    admin = await AdminUserRepository.get_by_email(db, credentials.email)

    if not admin:
        logger.warning("Login attempt for unknown admin email")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)

    if not verify_password(credentials.password, admin.password_hash):
        logger.warning(f"Invalid password for admin: {admin.id}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)

    if not admin.active:
        logger.warning(f"Login attempt for inactive admin: {admin.id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "code": "ACCOUNT_INACTIVE",
                "message": "Your account has been deactivated.",
            },
        )

    access_token = create_access_token(
        subject=str(admin.id),
        additional_claims={"email": admin.email},
    )
    await AdminUserRepository.record_login(db, admin.id)

    logger.info(f"Admin logged in: {admin.id}")

    return LoginResponse(
        access_token=access_token,
        token_type="bearer",
        expires_in=settings.access_token_expire_minutes * 60,
        admin=AdminResponse(
            id=str(admin.id),
            email=admin.email,
            last_login_at=admin.last_login_at.isoformat() if admin.last_login_at else None,
        ),
    )
