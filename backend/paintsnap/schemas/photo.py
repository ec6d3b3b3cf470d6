"""Photo request/response payloads. Uploads arrive as multipart forms."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from paintsnap.schemas.base import CamelModel
from paintsnap.schemas.tag import TagResponse


class PhotoUpdate(CamelModel):
    name: str = Field(max_length=255)


class PhotoMove(CamelModel):
    area_id: int


class PhotoResponse(CamelModel):
    id: int
    user_id: int
    area_id: int
    name: str
    filename: str
    content_type: str
    size_bytes: int
    image_url: str
    upload_date: datetime
    last_modified: datetime


class PhotoSummaryResponse(PhotoResponse):
    """Photo listing row with read-time aggregates."""
    tag_count: int = 0
    area_name: Optional[str] = None

    @classmethod
    def from_summary(cls, summary) -> "PhotoSummaryResponse":
        base = PhotoResponse.model_validate(summary.photo).model_dump()
        return cls(**base, tag_count=summary.tag_count, area_name=summary.area_name)


class PhotoDetailResponse(PhotoResponse):
    tags: List[TagResponse] = Field(default_factory=list)
