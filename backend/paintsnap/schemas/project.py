"""Project request/response payloads."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from paintsnap.schemas.base import CamelModel


class ProjectCreate(CamelModel):
    name: str = Field(min_length=1, max_length=120)
    description: Optional[str] = None


class ProjectUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = None


class ProjectResponse(CamelModel):
    id: int
    user_id: int
    name: str
    description: Optional[str] = None
    is_default: bool
    created_at: datetime
    updated_at: datetime
