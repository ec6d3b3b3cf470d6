"""
PaintSnap Backend — Tag Route Handlers
========================================

What:  Positioned annotations on one photo, nested under
       /api/photos/{photo_id}/tags.
How:   Writes are multipart so a swatch image (`tagImage`) can ride along.
       Positions arrive as form strings and are parsed and range-checked by
       the entity store; anything outside [0, 100] is a 400.
       Every write refreshes the parent photo's last_modified.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile

from paintsnap.dependencies import get_blob_store, get_current_user, get_limits, get_store
from paintsnap.exceptions import NotFoundError
from paintsnap.models import Photo, Tag, User
from paintsnap.schemas.common import ErrorResponse, MessageResponse
from paintsnap.schemas.tag import TagResponse
from paintsnap.services.blob_store import TAG_KIND, BlobStore, StoredBlob
from paintsnap.services.entity_store import EntityStore
from paintsnap.services.limits import AccountLimitEnforcer, Resource

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/photos/{photo_id}/tags", tags=["Tags"])

OWNER_ERRORS = {
    401: {"description": "Not authenticated", "model": ErrorResponse},
    403: {"description": "Photo or tag belongs to another user", "model": ErrorResponse},
    404: {"description": "Photo or tag not found", "model": ErrorResponse},
}


async def _owned_tag(store: EntityStore, photo_id: int, tag_id: int, user: User) -> Tag:
    tag = await store.get_owned(Tag, tag_id, user.id)
    if tag.photo_id != photo_id:
        raise NotFoundError(resource="tag", resource_id=tag_id)
    return tag


async def _store_tag_image(blob_store: BlobStore, upload: Optional[UploadFile]) -> Optional[StoredBlob]:
    # Browsers send an empty, unnamed part when no file was picked
    if upload is None or not (upload.filename or upload.size):
        return None
    try:
        content = await upload.read()
    finally:
        await upload.close()
    return await blob_store.put(TAG_KIND, content, content_length=upload.size)


@router.get("", response_model=List[TagResponse], responses=OWNER_ERRORS, summary="List a photo's tags")
async def list_tags(
    photo_id: int,
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
) -> List[TagResponse]:
    await store.get_owned(Photo, photo_id, user.id)
    tags = await store.list_by_parent(Tag, photo_id, owner_id=user.id)
    return [TagResponse.model_validate(t) for t in tags]


@router.post(
    "",
    status_code=201,
    response_model=TagResponse,
    responses={
        **OWNER_ERRORS,
        400: {"description": "Missing description or position out of range", "model": ErrorResponse},
        403: {"description": "Tag limit reached, or photo not yours", "model": ErrorResponse},
    },
    summary="Add a tag to a photo",
)
async def create_tag(
    photo_id: int,
    description: Optional[str] = Form(default=None),
    details: Optional[str] = Form(default=None),
    notes: Optional[str] = Form(default=None),
    position_x: Optional[str] = Form(default=None, alias="positionX"),
    position_y: Optional[str] = Form(default=None, alias="positionY"),
    tag_image: Optional[UploadFile] = File(default=None, alias="tagImage"),
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
    limits: AccountLimitEnforcer = Depends(get_limits),
    blob_store: BlobStore = Depends(get_blob_store),
) -> TagResponse:
    photo = await store.get_owned(Photo, photo_id, user.id)
    current = await store.count_by_parent(Tag, photo.id)
    limits.enforce(user, Resource.TAGS, current)

    blob = await _store_tag_image(blob_store, tag_image)
    try:
        tag = await store.create(Tag, {
            "user_id": user.id,
            "photo_id": photo.id,
            "description": description,
            "details": details,
            "notes": notes,
            "position_x": position_x,
            "position_y": position_y,
            "image_key": blob.key if blob else None,
            "image_content_type": blob.content_type if blob else None,
        })
    except Exception:
        if blob:
            await blob_store.release([blob.key])
        raise
    return TagResponse.model_validate(tag)


@router.delete(
    "",
    response_model=MessageResponse,
    responses=OWNER_ERRORS,
    summary="Delete every tag on a photo",
)
async def delete_all_tags(
    photo_id: int,
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
) -> MessageResponse:
    count = await store.delete_tags_for_photo(photo_id, user.id)
    return MessageResponse(message=f"Deleted {count} tags")


@router.get("/{tag_id}", response_model=TagResponse, responses=OWNER_ERRORS, summary="Get one tag")
async def get_tag(
    photo_id: int,
    tag_id: int,
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
) -> TagResponse:
    tag = await _owned_tag(store, photo_id, tag_id, user)
    return TagResponse.model_validate(tag)


@router.patch(
    "/{tag_id}",
    response_model=TagResponse,
    responses={
        **OWNER_ERRORS,
        400: {"description": "Position out of range", "model": ErrorResponse},
    },
    summary="Edit a tag",
    description="Multipart; only the fields sent are changed. A new `tagImage` replaces the old one.",
)
async def update_tag(
    photo_id: int,
    tag_id: int,
    description: Optional[str] = Form(default=None),
    details: Optional[str] = Form(default=None),
    notes: Optional[str] = Form(default=None),
    position_x: Optional[str] = Form(default=None, alias="positionX"),
    position_y: Optional[str] = Form(default=None, alias="positionY"),
    tag_image: Optional[UploadFile] = File(default=None, alias="tagImage"),
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
    blob_store: BlobStore = Depends(get_blob_store),
) -> TagResponse:
    tag = await _owned_tag(store, photo_id, tag_id, user)
    previous_image = tag.image_key

    patch = {
        name: value
        for name, value in {
            "description": description,
            "details": details,
            "notes": notes,
            "position_x": position_x,
            "position_y": position_y,
        }.items()
        if value is not None
    }
    blob = await _store_tag_image(blob_store, tag_image)
    if blob:
        patch["image_key"] = blob.key
        patch["image_content_type"] = blob.content_type

    try:
        tag = await store.update(Tag, tag_id, patch, owner_id=user.id)
    except Exception:
        if blob:
            await blob_store.release([blob.key])
        raise
    if blob:
        store.release_blob(previous_image)
    return TagResponse.model_validate(tag)


@router.delete("/{tag_id}", status_code=204, responses=OWNER_ERRORS, summary="Delete a tag")
async def delete_tag(
    photo_id: int,
    tag_id: int,
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
) -> Response:
    tag = await store.get_by_id(Tag, tag_id)
    if tag is None or tag.photo_id != photo_id:
        raise NotFoundError(resource="tag", resource_id=tag_id)
    await store.delete(Tag, tag_id, owner_id=user.id)
    return Response(status_code=204)


@router.get(
    "/{tag_id}/image",
    response_class=Response,
    responses={
        200: {"description": "Swatch image bytes"},
        404: {"description": "Tag or image not found", "model": ErrorResponse},
    },
    summary="Serve a tag's swatch image",
)
async def tag_image(
    photo_id: int,
    tag_id: int,
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
    blob_store: BlobStore = Depends(get_blob_store),
) -> Response:
    tag = await _owned_tag(store, photo_id, tag_id, user)
    if not tag.image_key:
        raise NotFoundError(resource="tag image", resource_id=tag_id)
    content = await blob_store.read(tag.image_key)
    return Response(
        content=content,
        media_type=tag.image_content_type or "application/octet-stream",
        headers={"Cache-Control": "private, max-age=3600"},
    )
