"""Create users, projects, areas, photos and tags

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Initial PaintSnap schema: the User → Project → Area → Photo → Tag
       hierarchy, each row carrying its owner's user_id.
How:   Foreign keys have no ON DELETE CASCADE. Deletes are cascaded by the
       application so blob keys can be collected before rows disappear.

Rollback: downgrade() drops every table (destructive — all data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str, comment: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
        comment=comment,
    )


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("username", sa.String(64), nullable=True, comment="Local login name"),
        sa.Column("password_hash", sa.String(255), nullable=True, comment="pbkdf2_sha256 hash"),
        sa.Column("firebase_uid", sa.String(128), nullable=True, comment="Federated identity subject"),
        sa.Column("display_name", sa.String(120), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("photo_url", sa.Text(), nullable=True),
        sa.Column(
            "account_type",
            sa.String(16),
            nullable=False,
            server_default=sa.text("'basic'"),
            comment="Quota tier: basic, premium, pro",
        ),
        _timestamp("created_at", "When the account was created (UTC)"),
        _timestamp("updated_at", "Last profile change (UTC)"),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint(
            "username IS NOT NULL OR firebase_uid IS NOT NULL",
            name="ck_users_has_identity",
        ),
        sa.CheckConstraint(
            "account_type IN ('basic', 'premium', 'pro')",
            name="ck_users_account_type",
        ),
    )
    op.create_index("ix_users_firebase_uid", "users", ["firebase_uid"], unique=True)

    # ── projects ──────────────────────────────────────────────────────────
    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "is_default",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
            comment="The project created with the account; areas without a project land here",
        ),
        _timestamp("created_at", "When the project was created (UTC)"),
        _timestamp("updated_at", "Last change to the project or its areas (UTC)"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
    )
    op.create_index("idx_projects_user_id", "projects", ["user_id"])

    # ── areas ─────────────────────────────────────────────────────────────
    op.create_table(
        "areas",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(120), nullable=False),
        _timestamp("created_at", "When the area was created (UTC)"),
        _timestamp("updated_at", "Last change to the area or its photos (UTC)"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
    )
    op.create_index("idx_areas_user_id_name", "areas", ["user_id", "name"])
    op.create_index("idx_areas_project_id", "areas", ["project_id"])

    # ── photos ────────────────────────────────────────────────────────────
    op.create_table(
        "photos",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("area_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False, server_default=sa.text("''")),
        sa.Column("filename", sa.String(255), nullable=False, comment="Client-side file name"),
        sa.Column("storage_key", sa.String(255), nullable=False, comment="Blob store key"),
        sa.Column("content_type", sa.String(50), nullable=False),
        sa.Column("size_bytes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _timestamp("upload_date", "When the photo was uploaded (UTC)"),
        _timestamp("last_modified", "Last change to the photo or its tags (UTC)"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["area_id"], ["areas.id"]),
    )
    # Area photo listing: WHERE area_id = ? ORDER BY upload_date DESC
    op.create_index("idx_photos_area_id_upload_date", "photos", ["area_id", "upload_date"])
    op.create_index("idx_photos_user_id", "photos", ["user_id"])

    # ── tags ──────────────────────────────────────────────────────────────
    op.create_table(
        "tags",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("photo_id", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, comment="Paint color or label"),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("image_key", sa.String(255), nullable=True, comment="Optional swatch blob key"),
        sa.Column("image_content_type", sa.String(50), nullable=True),
        sa.Column("position_x", sa.Float(), nullable=False, comment="Percent of image width, 0-100"),
        sa.Column("position_y", sa.Float(), nullable=False, comment="Percent of image height, 0-100"),
        _timestamp("created_at", "When the tag was placed (UTC)"),
        _timestamp("updated_at", "Last edit of the tag (UTC)"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["photo_id"], ["photos.id"]),
        sa.CheckConstraint("position_x >= 0 AND position_x <= 100", name="ck_tags_position_x"),
        sa.CheckConstraint("position_y >= 0 AND position_y <= 100", name="ck_tags_position_y"),
    )
    op.create_index("idx_tags_photo_id_created_at", "tags", ["photo_id", "created_at"])


def downgrade() -> None:
    """Drop every PaintSnap table, children first."""
    op.drop_index("idx_tags_photo_id_created_at", table_name="tags")
    op.drop_table("tags")
    op.drop_index("idx_photos_user_id", table_name="photos")
    op.drop_index("idx_photos_area_id_upload_date", table_name="photos")
    op.drop_table("photos")
    op.drop_index("idx_areas_project_id", table_name="areas")
    op.drop_index("idx_areas_user_id_name", table_name="areas")
    op.drop_table("areas")
    op.drop_index("idx_projects_user_id", table_name="projects")
    op.drop_table("projects")
    op.drop_index("ix_users_firebase_uid", table_name="users")
    op.drop_table("users")
