"""Area request/response payloads."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from paintsnap.schemas.base import CamelModel


class AreaCreate(CamelModel):
    name: str = Field(min_length=1, max_length=120)
    # Omitted → the user's default project
    project_id: Optional[int] = None


class AreaUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    project_id: Optional[int] = None


class AreaResponse(CamelModel):
    id: int
    user_id: int
    project_id: Optional[int] = None
    name: str
    created_at: datetime
    updated_at: datetime


class AreaSummaryResponse(AreaResponse):
    """Area listing row with read-time aggregates."""
    photo_count: int = 0
    latest_photo_url: Optional[str] = None

    @classmethod
    def from_summary(cls, summary) -> "AreaSummaryResponse":
        base = AreaResponse.model_validate(summary.area).model_dump()
        return cls(
            **base,
            photo_count=summary.photo_count,
            latest_photo_url=summary.latest_photo_url,
        )
