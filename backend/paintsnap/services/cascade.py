"""
PaintSnap Backend — Cascading Delete Coordinator
==================================================

What:  Deletes a Project, Area, Photo or Tag together with all descendants.
Why:   The database carries no ON DELETE CASCADE rules; child rows must go
       before their parents, and image blobs must be released alongside.
How:   Depth-first walk: Project → Areas → Photos → Tags. Each level is
       flushed before its parent is deleted, all inside the caller's
       transaction, so a failure part-way rolls the whole cascade back.
       Blob keys are collected rather than deleted; the owner of the
       transaction releases them after commit.

Order for a photo:
    1. every tag row (tag image keys collected)
    2. the photo row (photo blob key collected)
"""

import logging
from typing import List, Type

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from paintsnap.models import Area, Photo, Project, Tag

logger = logging.getLogger(__name__)


class CascadeDeleter:
    """
    Depth-first deleter bound to one session.

    Attributes:
        orphaned_blobs: storage keys whose rows were deleted. The caller
                        must release them only once the transaction commits.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.orphaned_blobs: List[str] = []

    async def delete(self, entity) -> None:
        if isinstance(entity, Project):
            await self.delete_project(entity)
        elif isinstance(entity, Area):
            await self.delete_area(entity)
        elif isinstance(entity, Photo):
            await self.delete_photo(entity)
        elif isinstance(entity, Tag):
            await self.delete_tag(entity)
        else:
            raise TypeError(f"Cannot cascade-delete {type(entity).__name__}")

    async def delete_project(self, project: Project) -> None:
        areas = await self._children(Area, Area.project_id, project.id)
        for area in areas:
            await self.delete_area(area)
        await self.session.delete(project)
        await self.session.flush()
        logger.info("Deleted project %s (%d areas)", project.id, len(areas))

    async def delete_area(self, area: Area) -> None:
        photos = await self._children(Photo, Photo.area_id, area.id)
        for photo in photos:
            await self.delete_photo(photo)
        await self.session.delete(area)
        await self.session.flush()
        logger.info("Deleted area %s (%d photos)", area.id, len(photos))

    async def delete_photo(self, photo: Photo) -> None:
        count = await self.delete_tags_for_photo(photo.id)
        self.orphaned_blobs.append(photo.storage_key)
        await self.session.delete(photo)
        await self.session.flush()
        logger.debug("Deleted photo %s (%d tags)", photo.id, count)

    async def delete_tags_for_photo(self, photo_id: int) -> int:
        tags = await self._children(Tag, Tag.photo_id, photo_id)
        for tag in tags:
            self._collect_tag_image(tag)
            await self.session.delete(tag)
        await self.session.flush()
        return len(tags)

    async def delete_tag(self, tag: Tag) -> None:
        self._collect_tag_image(tag)
        await self.session.delete(tag)
        await self.session.flush()

    def _collect_tag_image(self, tag: Tag) -> None:
        if tag.image_key:
            self.orphaned_blobs.append(tag.image_key)

    async def _children(self, model: Type, column, parent_id: int) -> list:
        result = await self.session.execute(select(model).where(column == parent_id))
        return list(result.scalars().all())
