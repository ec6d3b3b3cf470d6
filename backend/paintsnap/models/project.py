"""
PaintSnap Backend — Project Model
===================================

What:  Top-level container a user organizes Areas into.
How:   Each user gets one default project ("My Project") the first time they
       sign in. Deleting a project cascades to its areas through the
       cascading delete coordinator, not through database ON DELETE rules.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from paintsnap.database import Base
from paintsnap.models.base import created_column, modified_column

DEFAULT_PROJECT_NAME = "My Project"
DEFAULT_PROJECT_DESCRIPTION = "My first project"


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = created_column()
    updated_at: Mapped[datetime] = modified_column()

    __table_args__ = (
        Index("idx_projects_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, user_id={self.user_id}, name={self.name!r})>"
