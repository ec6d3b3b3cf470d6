"""Tag response payloads. Tag writes arrive as multipart forms (see routes/tags.py)."""

from datetime import datetime
from typing import Optional

from paintsnap.schemas.base import CamelModel


class TagResponse(CamelModel):
    id: int
    user_id: int
    photo_id: int
    description: str
    details: Optional[str] = None
    notes: Optional[str] = None
    position_x: float
    position_y: float
    image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime
