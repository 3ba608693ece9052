"""Pydantic schemas for auth requests and responses.

Learn: Pydantic v2 models validate request/response data. Separate
request schemas (input) from response schemas (output) for clean APIs.
Length limits mirror the users table columns.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# ─── Requests ───────────────────────────────────────────

class RegisterRequest(BaseModel):
    login_id: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=8, max_length=100)
    display_name: str = Field(..., min_length=1, max_length=50)
    email: Optional[str] = Field(
        None, max_length=120, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
    )
    phone: Optional[str] = Field(None, min_length=7, max_length=30)


class LoginRequest(BaseModel):
    login_id: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1, max_length=100)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=10)


class LogoutRequest(BaseModel):
    refresh_token: str = Field(..., min_length=10)


class AssertionLoginRequest(BaseModel):
    id_token: str = Field(..., min_length=10)


# ─── Responses ──────────────────────────────────────────

class UserSummary(BaseModel):
    uid: str
    login_id: str
    display_name: str
    is_featured: bool

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    expires_in: int  # access token lifetime, seconds
    user: UserSummary


class LogoutResponse(BaseModel):
    ok: bool = True


class OAuthStartResponse(BaseModel):
    provider: str
    url: str


class MeResponse(BaseModel):
    uid: str
    login_id: str
    display_name: str
    email: Optional[str] = None
    role: str
    is_featured: bool
    created_at: Optional[datetime] = None
    providers: list[str] = []
