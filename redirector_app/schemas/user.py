import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from redirector_app.models.enums import UserRole
from redirector_app.schemas.common import CamelModel


class TokenRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    """OAuth2-style token response (snake_case like every bearer token endpoint)"""
    access_token: str
    token_type: str = "Bearer"
    expires_in: int


class UserCreate(CamelModel):
    username: str = Field(..., min_length=1)
    role: UserRole
    # Generated (and returned once) when omitted
    password: Optional[str] = Field(None, min_length=1)


class UserResponse(CamelModel):
    id: uuid.UUID
    username: str
    role: UserRole
    created_at: datetime
    updated_at: datetime
    # Only set when the password was generated by the server
    password: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    current_password: Optional[str] = None
    password: Optional[str] = Field(None, min_length=1)


class ChangePasswordResponse(BaseModel):
    """
    A fresh token is included when users change their own password (their
    current token just stopped working). Same field names as TokenResponse.
    """
    access_token: Optional[str] = None
    token_type: Optional[str] = None
    expires_in: Optional[int] = None
    password: Optional[str] = None
