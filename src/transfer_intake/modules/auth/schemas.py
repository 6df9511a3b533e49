"""Authentication schemas."""

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class AdminResponse(BaseModel):
    """Admin account returned after login."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    email: str
    last_login_at: str | None = Field(None, serialization_alias="lastLoginAt")


class LoginResponse(BaseModel):
    """Login response schema."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(..., serialization_alias="accessToken")
    token_type: str = Field("bearer", serialization_alias="tokenType")
    expires_in: int = Field(..., serialization_alias="expiresIn")
    admin: AdminResponse
