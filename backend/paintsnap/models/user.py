"""
PaintSnap Backend — User Model
================================

What:  ORM model for the `users` table: the one canonical identity record.
Why:   Local password users and Firebase users must resolve to the same row
       type so every other table can reference a single owner id.

Table Design Rationale:
    - username + password_hash: set for local accounts
    - firebase_uid: set for federated accounts (unique, indexed)
    - A row has at least one of the two; both may be set.
    - account_type drives quota lookup: basic | premium | pro
    - Users are never hard-deleted by normal flows.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from paintsnap.database import Base
from paintsnap.models.base import created_column, modified_column

ACCOUNT_TYPES = ("basic", "premium", "pro")


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # ── Local credentials ─────────────────────────────────────────────────
    username: Mapped[Optional[str]] = mapped_column(String(64), unique=True, nullable=True)
    # pbkdf2_sha256 hash via passlib; never the plaintext
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # ── Federated identity ────────────────────────────────────────────────
    firebase_uid: Mapped[Optional[str]] = mapped_column(
        String(128), unique=True, nullable=True, index=True
    )

    # ── Profile ───────────────────────────────────────────────────────────
    display_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    photo_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    account_type: Mapped[str] = mapped_column(String(16), nullable=False, default="basic")

    # ── Timestamps ────────────────────────────────────────────────────────
    created_at: Mapped[datetime] = created_column()
    updated_at: Mapped[datetime] = modified_column()
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "username IS NOT NULL OR firebase_uid IS NOT NULL",
            name="ck_users_has_identity",
        ),
        CheckConstraint(
            "account_type IN ('basic', 'premium', 'pro')",
            name="ck_users_account_type",
        ),
    )

    @property
    def user_id(self) -> int:
        """A user owns itself; lets the ownership guard treat it like any entity."""
        return self.id

    def __repr__(self) -> str:
        return (
            f"<User(id={self.id}, username={self.username!r}, "
            f"firebase_uid={self.firebase_uid!r}, account_type='{self.account_type}')>"
        )
