"""
PaintSnap Backend — Entity Store
==================================

What:  The single persistence gateway for User, Project, Area, Photo and Tag.
Why:   Every write goes through the same checks: required fields, tag
       position range, parent existence, owner-chain consistency and
       ancestor timestamp refresh. Routes never touch the session directly.
How:   A registry (`ENTITY_RULES`) describes each model's parents, listing
       order, mutable fields and which ancestor a write refreshes. The store
       works against one AsyncSession; the request dependency commits or
       rolls back.
Who:   Route handlers (via `get_store`), the dual auth reconciler, tests.

Listing order:
    Projects  oldest first
    Areas     alphabetical (case-insensitive)
    Photos    newest upload first
    Tags      oldest first

Timestamp refresh on write:
    Tag   → Photo.last_modified
    Photo → Area.updated_at
    Area  → Project.updated_at
"""

import logging
import math
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Dict,
    FrozenSet,
    Iterator,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Tuple,
    Type,
)

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from paintsnap.exceptions import DatabaseError, ForbiddenError, NotFoundError, ValidationError
from paintsnap.models import Area, Photo, Project, Tag, User
from paintsnap.models.base import utcnow
from paintsnap.models.project import DEFAULT_PROJECT_DESCRIPTION, DEFAULT_PROJECT_NAME
from paintsnap.models.tag import POSITION_MAX, POSITION_MIN
from paintsnap.services.cascade import CascadeDeleter
from paintsnap.services.ownership import authorize, require_owner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntityRules:
    resource: str
    # parent model → foreign-key attribute on this model
    parents: Dict[Type, str] = field(default_factory=dict)
    ordering: Tuple = ()
    required: Tuple[str, ...] = ()
    # text fields that may not be blank when present
    non_blank: Tuple[str, ...] = ()
    mutable: FrozenSet[str] = frozenset()
    modified_attr: str = "updated_at"
    # foreign-key attribute naming the ancestor refreshed on write
    touches: Optional[str] = None


ENTITY_RULES: Dict[Type, EntityRules] = {
    User: EntityRules(
        resource="user",
        ordering=(User.id,),
        mutable=frozenset({
            "display_name", "email", "photo_url", "account_type",
            "firebase_uid", "password_hash", "last_login",
        }),
    ),
    Project: EntityRules(
        resource="project",
        parents={User: "user_id"},
        ordering=(Project.created_at, Project.id),
        required=("user_id", "name"),
        non_blank=("name",),
        mutable=frozenset({"name", "description"}),
    ),
    Area: EntityRules(
        resource="area",
        parents={User: "user_id", Project: "project_id"},
        ordering=(func.lower(Area.name), Area.id),
        required=("user_id", "name"),
        non_blank=("name",),
        mutable=frozenset({"name", "project_id"}),
        touches="project_id",
    ),
    Photo: EntityRules(
        resource="photo",
        parents={User: "user_id", Area: "area_id"},
        ordering=(Photo.upload_date.desc(), Photo.id.desc()),
        required=("user_id", "area_id", "filename", "storage_key", "content_type"),
        mutable=frozenset({"name", "area_id"}),
        modified_attr="last_modified",
        touches="area_id",
    ),
    Tag: EntityRules(
        resource="tag",
        parents={User: "user_id", Photo: "photo_id"},
        ordering=(Tag.created_at, Tag.id),
        required=("user_id", "photo_id", "description", "position_x", "position_y"),
        non_blank=("description",),
        mutable=frozenset({
            "description", "details", "notes", "position_x", "position_y",
            "image_key", "image_content_type",
        }),
        touches="photo_id",
    ),
}

POSITION_FIELDS = ("position_x", "position_y")


class AreaSummary(NamedTuple):
    area: Area
    photo_count: int
    latest_photo_url: Optional[str]


class PhotoSummary(NamedTuple):
    photo: Photo
    tag_count: int
    area_name: Optional[str]


def coerce_position(field_name: str, value: Any) -> float:
    """
    Parse a tag coordinate into a float within [0, 100].

    Accepts numbers and numeric strings (multipart forms send strings).
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number", field=field_name)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(
            f"{field_name} must be a number",
            field=field_name,
            context={"value": str(value)[:50]},
        )
    if math.isnan(number) or not POSITION_MIN <= number <= POSITION_MAX:
        raise ValidationError(
            f"{field_name} must be between {POSITION_MIN:g} and {POSITION_MAX:g}",
            field=field_name,
            context={"value": number},
        )
    return number


class EntityStore:
    """
    Persistence operations for the User → Project → Area → Photo → Tag tree.

    Args:
        session:           request-scoped AsyncSession
        on_orphaned_blobs: called with storage keys whose rows were deleted
                           or replaced. The API queues them on the session
                           so blobs are released only after commit.
    """

    def __init__(
        self,
        session: AsyncSession,
        on_orphaned_blobs: Optional[Callable[[List[str]], None]] = None,
    ):
        self.session = session
        self._on_orphaned_blobs = on_orphaned_blobs

    # ══════════════════════════════════════════════════════════════════════
    # Generic CRUD
    # ══════════════════════════════════════════════════════════════════════

    async def create(self, model: Type, values: Mapping[str, Any]):
        """
        Insert a new row and return it with id and timestamps assigned.

        Raises:
            ValidationError: missing/blank required field, unknown field,
                             non-numeric or out-of-range tag position
            NotFoundError:   a referenced parent does not exist
            ForbiddenError:  a referenced parent belongs to another user
        """
        rules = _rules(model)
        data = self._clean(model, rules, values)
        missing = [name for name in rules.required if data.get(name) is None]
        if missing:
            raise ValidationError(
                f"{missing[0]} is required",
                field=missing[0],
                context={"missing": missing},
            )

        await self._check_parents(rules, data, owner_id=data.get("user_id"))

        entity = model(**data)
        with self._translate_errors("create", rules.resource):
            self.session.add(entity)
            if rules.touches:
                await self._touch(rules, getattr(entity, rules.touches))
            await self.session.flush()
        logger.debug("Created %s %s", rules.resource, entity.id)
        return entity

    async def get_by_id(self, model: Type, entity_id: int):
        """Return the row, or None when it does not exist."""
        rules = _rules(model)
        with self._translate_errors("get", rules.resource):
            return await self.session.get(model, entity_id)

    async def get_owned(self, model: Type, entity_id: int, owner_id: int):
        """Return the row if `owner_id` owns it; NotFound/Forbidden otherwise."""
        entity = await self.get_by_id(model, entity_id)
        return require_owner(owner_id, entity, _rules(model).resource, entity_id)

    async def list_by_parent(
        self,
        model: Type,
        parent_id: int,
        owner_id: Optional[int] = None,
        parent_model: Optional[Type] = None,
    ) -> list:
        """
        List children of one parent in the model's defined order.

        `parent_model` defaults to the model's structural parent (Area for
        Photo, Photo for Tag, ...). Pass `User` to list everything a user
        owns, e.g. all areas across projects.
        """
        rules = _rules(model)
        fk = self._parent_fk(rules, parent_model)
        stmt = select(model).where(getattr(model, fk) == parent_id)
        if owner_id is not None:
            stmt = stmt.where(model.user_id == owner_id)
        stmt = stmt.order_by(*rules.ordering)

        with self._translate_errors("list", rules.resource):
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

    async def count_by_parent(
        self,
        model: Type,
        parent_id: int,
        parent_model: Optional[Type] = None,
    ) -> int:
        rules = _rules(model)
        fk = self._parent_fk(rules, parent_model)
        stmt = select(func.count(model.id)).where(getattr(model, fk) == parent_id)
        with self._translate_errors("count", rules.resource):
            result = await self.session.execute(stmt)
            return result.scalar() or 0

    async def update(
        self,
        model: Type,
        entity_id: int,
        patch: Mapping[str, Any],
        owner_id: int,
    ):
        """
        Apply a partial update and return the row.

        All checks run before any attribute is assigned, so a rejected
        update leaves the row unchanged. Moving a row to a new parent
        refreshes both the old and the new parent's timestamp.
        """
        rules = _rules(model)
        entity = await self.get_by_id(model, entity_id)
        if entity is None:
            raise NotFoundError(resource=rules.resource, resource_id=entity_id)
        if not authorize(owner_id, entity):
            raise ForbiddenError(resource=rules.resource, resource_id=entity_id)

        data = self._clean(model, rules, patch)
        immutable = sorted(set(data) - rules.mutable)
        if immutable:
            raise ValidationError(
                f"{immutable[0]} cannot be changed",
                field=immutable[0],
                context={"immutable": immutable},
            )
        for name in rules.required:
            if name in data and data[name] is None:
                raise ValidationError(f"{name} is required", field=name)

        changed_parents = {
            fk: value for fk, value in data.items()
            if fk in rules.parents.values() and value != getattr(entity, fk)
        }
        await self._check_parents(rules, changed_parents, owner_id=entity.user_id)

        previous_parent = getattr(entity, rules.touches) if rules.touches else None
        with self._translate_errors("update", rules.resource):
            for name, value in data.items():
                setattr(entity, name, value)
            setattr(entity, rules.modified_attr, utcnow())
            if rules.touches:
                await self._touch(rules, getattr(entity, rules.touches))
                if previous_parent != getattr(entity, rules.touches):
                    await self._touch(rules, previous_parent)
            await self.session.flush()
        return entity

    async def delete(self, model: Type, entity_id: int, owner_id: int) -> bool:
        """
        Delete a row and everything beneath it.

        Returns:
            True if a row was removed, False if none existed.

        Raises:
            ForbiddenError: the row belongs to someone else
        """
        rules = _rules(model)
        entity = await self.get_by_id(model, entity_id)
        if entity is None:
            return False
        if not authorize(owner_id, entity):
            raise ForbiddenError(resource=rules.resource, resource_id=entity_id)

        parent_id = getattr(entity, rules.touches) if rules.touches else None
        deleter = CascadeDeleter(self.session)
        with self._translate_errors("delete", rules.resource):
            await deleter.delete(entity)
            if parent_id is not None:
                await self._touch(rules, parent_id)
            await self.session.flush()

        self._release(deleter.orphaned_blobs)
        logger.info("Deleted %s %s for user %s", rules.resource, entity_id, owner_id)
        return True

    async def delete_tags_for_photo(self, photo_id: int, owner_id: int) -> int:
        """Delete every tag on a photo the user owns; returns how many went."""
        photo = await self.get_owned(Photo, photo_id, owner_id)
        deleter = CascadeDeleter(self.session)
        with self._translate_errors("delete", "tag"):
            count = await deleter.delete_tags_for_photo(photo.id)
            photo.last_modified = utcnow()
            await self.session.flush()
        self._release(deleter.orphaned_blobs)
        return count

    def release_blob(self, key: Optional[str]) -> None:
        """Hand a replaced blob to the post-commit release hook."""
        if key:
            self._release([key])

    # ══════════════════════════════════════════════════════════════════════
    # Read-time aggregates
    # ══════════════════════════════════════════════════════════════════════

    async def list_area_summaries(
        self,
        owner_id: int,
        project_id: Optional[int] = None,
    ) -> List[AreaSummary]:
        """Areas with photo count and newest photo URL, alphabetical."""
        counted = aliased(Photo)
        newest = aliased(Photo)
        photo_count = (
            select(func.count(counted.id))
            .where(counted.area_id == Area.id)
            .correlate(Area)
            .scalar_subquery()
        )
        latest_photo_id = (
            select(newest.id)
            .where(newest.area_id == Area.id)
            .order_by(newest.upload_date.desc(), newest.id.desc())
            .limit(1)
            .correlate(Area)
            .scalar_subquery()
        )
        stmt = (
            select(Area, photo_count.label("photo_count"), latest_photo_id.label("latest_photo_id"))
            .where(Area.user_id == owner_id)
            .order_by(*ENTITY_RULES[Area].ordering)
        )
        if project_id is not None:
            stmt = stmt.where(Area.project_id == project_id)

        with self._translate_errors("list", "area"):
            result = await self.session.execute(stmt)
            rows = result.all()
        return [
            AreaSummary(
                area=area,
                photo_count=count or 0,
                latest_photo_url=f"/api/photos/{latest}/image" if latest else None,
            )
            for area, count, latest in rows
        ]

    async def list_photo_summaries(
        self,
        owner_id: int,
        area_id: Optional[int] = None,
    ) -> List[PhotoSummary]:
        """Photos with tag count and area name, newest first."""
        counted = aliased(Tag)
        tag_count = (
            select(func.count(counted.id))
            .where(counted.photo_id == Photo.id)
            .correlate(Photo)
            .scalar_subquery()
        )
        stmt = (
            select(Photo, tag_count.label("tag_count"), Area.name.label("area_name"))
            .join(Area, Area.id == Photo.area_id)
            .where(Photo.user_id == owner_id)
            .order_by(*ENTITY_RULES[Photo].ordering)
        )
        if area_id is not None:
            stmt = stmt.where(Photo.area_id == area_id)

        with self._translate_errors("list", "photo"):
            result = await self.session.execute(stmt)
            rows = result.all()
        return [
            PhotoSummary(photo=photo, tag_count=count or 0, area_name=area_name)
            for photo, count, area_name in rows
        ]

    # ══════════════════════════════════════════════════════════════════════
    # User & project lookups
    # ══════════════════════════════════════════════════════════════════════

    async def find_user_by_login(self, identifier: str) -> Optional[User]:
        """Look up a local account by username or (case-insensitive) email."""
        identifier = identifier.strip()
        stmt = select(User).where(
            or_(User.username == identifier, User.email == identifier.lower())
        )
        with self._translate_errors("get", "user"):
            result = await self.session.execute(stmt.limit(1))
            return result.scalars().first()

    async def find_user_by_firebase_uid(self, uid: str) -> Optional[User]:
        with self._translate_errors("get", "user"):
            result = await self.session.execute(select(User).where(User.firebase_uid == uid))
            return result.scalar_one_or_none()

    async def username_or_email_taken(self, username: str, email: Optional[str]) -> Optional[str]:
        """Return "username" or "email" for the first clash, else None."""
        with self._translate_errors("get", "user"):
            result = await self.session.execute(select(User.id).where(User.username == username))
            if result.first() is not None:
                return "username"
            if email:
                result = await self.session.execute(select(User.id).where(User.email == email))
                if result.first() is not None:
                    return "email"
        return None

    async def get_default_project(self, user_id: int) -> Optional[Project]:
        stmt = (
            select(Project)
            .where(Project.user_id == user_id, Project.is_default.is_(True))
            .order_by(Project.id)
            .limit(1)
        )
        with self._translate_errors("get", "project"):
            result = await self.session.execute(stmt)
            return result.scalars().first()

    async def ensure_default_project(self, user: User) -> Project:
        """Return the user's default project, creating it when missing."""
        project = await self.get_default_project(user.id)
        if project is not None:
            return project
        project = await self.create(Project, {
            "user_id": user.id,
            "name": DEFAULT_PROJECT_NAME,
            "description": DEFAULT_PROJECT_DESCRIPTION,
            "is_default": True,
        })
        logger.info("Created default project %s for user %s", project.id, user.id)
        return project

    # ══════════════════════════════════════════════════════════════════════
    # Internals
    # ══════════════════════════════════════════════════════════════════════

    def _clean(self, model: Type, rules: EntityRules, values: Mapping[str, Any]) -> Dict[str, Any]:
        columns = set(model.__table__.columns.keys())
        unknown = sorted(set(values) - columns)
        if unknown:
            raise ValidationError(
                f"Unknown field: {unknown[0]}",
                field=unknown[0],
                context={"unknown": unknown},
            )

        data = dict(values)
        for name in rules.non_blank:
            if name not in data or data[name] is None:
                continue
            if not isinstance(data[name], str) or not data[name].strip():
                raise ValidationError(f"{name} must not be blank", field=name)
            data[name] = data[name].strip()
        if model is Tag:
            for name in POSITION_FIELDS:
                if data.get(name) is not None:
                    data[name] = coerce_position(name, data[name])
        return data

    async def _check_parents(
        self,
        rules: EntityRules,
        data: Mapping[str, Any],
        owner_id: Optional[int],
    ) -> None:
        """Every referenced parent must exist and share the owner."""
        for parent_model, fk in rules.parents.items():
            parent_id = data.get(fk)
            if parent_id is None:
                continue
            parent_rules = _rules(parent_model)
            parent = await self.get_by_id(parent_model, parent_id)
            if parent is None:
                raise NotFoundError(resource=parent_rules.resource, resource_id=parent_id)
            if owner_id is not None and parent.user_id != owner_id:
                raise ForbiddenError(resource=parent_rules.resource, resource_id=parent_id)

    async def _touch(self, rules: EntityRules, parent_id: Optional[int]) -> None:
        if parent_id is None or rules.touches is None:
            return
        parent_model = next(m for m, fk in rules.parents.items() if fk == rules.touches)
        parent = await self.session.get(parent_model, parent_id)
        if parent is not None:
            setattr(parent, _rules(parent_model).modified_attr, utcnow())

    def _parent_fk(self, rules: EntityRules, parent_model: Optional[Type]) -> str:
        if parent_model is None:
            structural = [m for m in rules.parents if m is not User]
            parent_model = structural[0] if structural else User
        try:
            return rules.parents[parent_model]
        except KeyError:
            raise ValueError(
                f"{rules.resource} has no parent of type {getattr(parent_model, '__name__', parent_model)}"
            )

    def _release(self, keys: List[str]) -> None:
        if keys and self._on_orphaned_blobs is not None:
            self._on_orphaned_blobs(list(keys))

    @contextmanager
    def _translate_errors(self, operation: str, resource: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            logger.error(
                "Database error during %s %s: %s", operation, resource, str(e), exc_info=True
            )
            raise DatabaseError(
                context={"operation": operation, "resource": resource, "error_type": type(e).__name__},
            ) from e


def _rules(model: Type) -> EntityRules:
    try:
        return ENTITY_RULES[model]
    except KeyError:
        raise ValueError(f"{getattr(model, '__name__', model)} is not a stored entity")
