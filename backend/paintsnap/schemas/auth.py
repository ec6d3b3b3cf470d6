"""
PaintSnap Backend — Auth Schemas
==================================

What:  Request/response payloads for local and federated sign-in.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from paintsnap.schemas.base import CamelModel

MIN_PASSWORD_LENGTH = 6


class RegisterRequest(CamelModel):
    username: str = Field(min_length=3, max_length=64)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=MIN_PASSWORD_LENGTH, max_length=128)
    display_name: Optional[str] = Field(default=None, max_length=120)

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Username is required")
        return v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Email address is not valid")
        return v


class LoginRequest(CamelModel):
    # Username or email address
    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class VerifyTokenRequest(CamelModel):
    token: str = Field(min_length=1, description="Firebase ID token")


class UserResponse(CamelModel):
    id: int
    username: Optional[str] = None
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    firebase_uid: Optional[str] = None
    account_type: str
    created_at: datetime
    last_login: Optional[datetime] = None


class LimitsResponse(CamelModel):
    """
    What:  Remaining quota for the signed-in user.
    How:   photos/tags remaining are only filled when the request names the
           container (`areaId`, `photoId`) they are counted against.
    """
    account_type: str
    is_premium: bool
    max_areas: int
    max_photos_per_area: int
    max_tags_per_photo: int
    areas_remaining: int
    photos_remaining: Optional[int] = None
    tags_remaining: Optional[int] = None
    upgrade_url: str
