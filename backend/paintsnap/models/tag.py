"""
PaintSnap Backend — Tag Model
===============================

What:  A positioned annotation on a photo (paint swatch, note).

Table Design Rationale:
    - position_x / position_y are percentages of the photo's width/height,
      constrained to [0, 100] at the database level as well as in the store
    - an optional swatch image lives in the blob store (image_key)
    - tags list chronologically, so (photo_id, created_at) is indexed
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from paintsnap.database import Base
from paintsnap.models.base import created_column, modified_column

POSITION_MIN = 0.0
POSITION_MAX = 100.0


class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    photo_id: Mapped[int] = mapped_column(ForeignKey("photos.id"), nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ── Optional swatch image ─────────────────────────────────────────────
    image_key: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    image_content_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    position_x: Mapped[float] = mapped_column(Float, nullable=False)
    position_y: Mapped[float] = mapped_column(Float, nullable=False)

    created_at: Mapped[datetime] = created_column()
    updated_at: Mapped[datetime] = modified_column()

    __table_args__ = (
        CheckConstraint("position_x >= 0 AND position_x <= 100", name="ck_tags_position_x"),
        CheckConstraint("position_y >= 0 AND position_y <= 100", name="ck_tags_position_y"),
        Index("idx_tags_photo_id_created_at", "photo_id", "created_at"),
    )

    @property
    def image_url(self) -> Optional[str]:
        if not self.image_key:
            return None
        return f"/api/photos/{self.photo_id}/tags/{self.id}/image"

    def __repr__(self) -> str:
        return (
            f"<Tag(id={self.id}, photo_id={self.photo_id}, "
            f"position=({self.position_x}, {self.position_y}))>"
        )
