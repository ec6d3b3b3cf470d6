"""
PaintSnap Backend — Photo Model
=================================

What:  An uploaded image of an area.
How:   The image bytes live in the blob store; the row keeps the storage key,
       content type and size. Photos list newest first, so
       (area_id, upload_date DESC) is indexed.
"""

from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from paintsnap.database import Base
from paintsnap.models.base import created_column, modified_column


class Photo(Base):
    __tablename__ = "photos"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    area_id: Mapped[int] = mapped_column(ForeignKey("areas.id"), nullable=False)

    # Display name chosen by the user; may be empty
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    # Original upload filename, kept for downloads
    filename: Mapped[str] = mapped_column(String(255), nullable=False)

    # ── Blob reference ────────────────────────────────────────────────────
    # Format: photos/YYYY/MM/DD/<uuid>.<ext>
    storage_key: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[str] = mapped_column(String(50), nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    upload_date: Mapped[datetime] = created_column()
    last_modified: Mapped[datetime] = modified_column()

    __table_args__ = (
        Index("idx_photos_area_id_upload_date", "area_id", "upload_date"),
        Index("idx_photos_user_id", "user_id"),
    )

    @property
    def image_url(self) -> str:
        return f"/api/photos/{self.id}/image"

    def __repr__(self) -> str:
        return f"<Photo(id={self.id}, area_id={self.area_id}, name={self.name!r})>"
