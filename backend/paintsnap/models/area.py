"""
PaintSnap Backend — Area Model
================================

What:  A physical space (kitchen, hallway) holding photos.

Table Design Rationale:
    - user_id duplicates the project's owner so ownership checks are a
      single-row read
    - project_id is nullable in the schema; the API always fills it
    - listing is alphabetical, so (user_id, name) is indexed
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from paintsnap.database import Base
from paintsnap.models.base import created_column, modified_column


class Area(Base):
    __tablename__ = "areas"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    project_id: Mapped[Optional[int]] = mapped_column(ForeignKey("projects.id"), nullable=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    created_at: Mapped[datetime] = created_column()
    updated_at: Mapped[datetime] = modified_column()

    __table_args__ = (
        Index("idx_areas_user_id_name", "user_id", "name"),
        Index("idx_areas_project_id", "project_id"),
    )

    def __repr__(self) -> str:
        return f"<Area(id={self.id}, user_id={self.user_id}, name={self.name!r})>"
