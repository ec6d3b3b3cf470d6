"""
PaintSnap Backend — Photo Route Handlers
==========================================

What:  Upload, list, rename, move and delete photos; serve their images.
Who:   Called by the web client's area and photo views.

Upload flow (POST /api/photos, multipart):
    1. Area must exist and be yours
    2. Photos-per-area quota checked
    3. Image validated (size, content sniffing) and written to the blob store
    4. Row inserted; if that fails the fresh blob is released at once

`GET /api/photos/{id}/image` is public so `<img src>` works without
credentials; image URLs are unguessable only by id, which matches the
original client's behavior.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile

from paintsnap.dependencies import get_blob_store, get_current_user, get_limits, get_store
from paintsnap.exceptions import NotFoundError
from paintsnap.models import Area, Photo, Tag, User
from paintsnap.schemas.common import ErrorResponse
from paintsnap.schemas.photo import (
    PhotoDetailResponse,
    PhotoMove,
    PhotoResponse,
    PhotoSummaryResponse,
    PhotoUpdate,
)
from paintsnap.schemas.tag import TagResponse
from paintsnap.services.blob_store import PHOTO_KIND, BlobStore
from paintsnap.services.entity_store import EntityStore
from paintsnap.services.limits import AccountLimitEnforcer, Resource

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/photos", tags=["Photos"])

OWNER_ERRORS = {
    401: {"description": "Not authenticated", "model": ErrorResponse},
    403: {"description": "Photo belongs to another user", "model": ErrorResponse},
    404: {"description": "Photo not found", "model": ErrorResponse},
}


@router.get(
    "",
    response_model=List[PhotoSummaryResponse],
    summary="List all your photos",
    description="Newest first across every area, with tag count and area name.",
)
async def list_photos(
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
) -> List[PhotoSummaryResponse]:
    summaries = await store.list_photo_summaries(user.id)
    return [PhotoSummaryResponse.from_summary(s) for s in summaries]


@router.post(
    "",
    status_code=201,
    response_model=PhotoResponse,
    responses={
        400: {"description": "Invalid image, type or size", "model": ErrorResponse},
        403: {"description": "Photo limit reached, or area not yours", "model": ErrorResponse},
        404: {"description": "Area not found", "model": ErrorResponse},
    },
    summary="Upload a photo into an area",
    description="Multipart upload: `image` (JPEG, PNG or WebP, max 10MB), `areaId`, optional `name`.",
)
async def upload_photo(
    image: UploadFile = File(..., description="Photo file"),
    area_id: int = Form(..., alias="areaId"),
    name: str = Form(default="", max_length=255),
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
    limits: AccountLimitEnforcer = Depends(get_limits),
    blob_store: BlobStore = Depends(get_blob_store),
) -> PhotoResponse:
    area = await store.get_owned(Area, area_id, user.id)
    current = await store.count_by_parent(Photo, area.id)
    limits.enforce(user, Resource.PHOTOS, current)

    try:
        content = await image.read()
    finally:
        await image.close()
    logger.info(
        "Received photo upload: filename=%s, size=%d bytes, area=%s",
        image.filename or "unknown",
        len(content),
        area.id,
    )

    blob = await blob_store.put(PHOTO_KIND, content, content_length=image.size)
    try:
        photo = await store.create(Photo, {
            "user_id": user.id,
            "area_id": area.id,
            "name": name.strip(),
            "filename": image.filename or "upload",
            "storage_key": blob.key,
            "content_type": blob.content_type,
            "size_bytes": blob.size_bytes,
        })
    except Exception:
        await blob_store.release([blob.key])
        raise
    return PhotoResponse.model_validate(photo)


@router.get(
    "/{photo_id}",
    response_model=PhotoDetailResponse,
    responses=OWNER_ERRORS,
    summary="Get a photo with its tags",
)
async def get_photo(
    photo_id: int,
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
) -> PhotoDetailResponse:
    photo = await store.get_owned(Photo, photo_id, user.id)
    tags = await store.list_by_parent(Tag, photo.id, owner_id=user.id)
    return PhotoDetailResponse(
        **PhotoResponse.model_validate(photo).model_dump(),
        tags=[TagResponse.model_validate(t) for t in tags],
    )


@router.patch("/{photo_id}", response_model=PhotoResponse, responses=OWNER_ERRORS, summary="Rename a photo")
async def rename_photo(
    photo_id: int,
    payload: PhotoUpdate,
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
) -> PhotoResponse:
    photo = await store.update(Photo, photo_id, {"name": payload.name.strip()}, owner_id=user.id)
    return PhotoResponse.model_validate(photo)


@router.patch(
    "/{photo_id}/move",
    response_model=PhotoResponse,
    responses={
        **OWNER_ERRORS,
        403: {"description": "Not yours, or target area is full", "model": ErrorResponse},
    },
    summary="Move a photo to another of your areas",
)
async def move_photo(
    photo_id: int,
    payload: PhotoMove,
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
    limits: AccountLimitEnforcer = Depends(get_limits),
) -> PhotoResponse:
    photo = await store.get_owned(Photo, photo_id, user.id)
    if payload.area_id != photo.area_id:
        target = await store.get_owned(Area, payload.area_id, user.id)
        current = await store.count_by_parent(Photo, target.id)
        limits.enforce(user, Resource.PHOTOS, current)
    photo = await store.update(Photo, photo_id, {"area_id": payload.area_id}, owner_id=user.id)
    logger.info("Moved photo %s to area %s", photo.id, photo.area_id)
    return PhotoResponse.model_validate(photo)


@router.delete(
    "/{photo_id}",
    status_code=204,
    responses=OWNER_ERRORS,
    summary="Delete a photo and its tags",
)
async def delete_photo(
    photo_id: int,
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
) -> Response:
    if not await store.delete(Photo, photo_id, owner_id=user.id):
        raise NotFoundError(resource="photo", resource_id=photo_id)
    return Response(status_code=204)


@router.get(
    "/{photo_id}/image",
    response_class=Response,
    responses={
        200: {"description": "Image bytes", "content": {"image/jpeg": {}, "image/png": {}, "image/webp": {}}},
        404: {"description": "Photo not found", "model": ErrorResponse},
    },
    summary="Serve a photo's image (public)",
)
async def photo_image(
    photo_id: int,
    store: EntityStore = Depends(get_store),
    blob_store: BlobStore = Depends(get_blob_store),
) -> Response:
    photo = await store.get_by_id(Photo, photo_id)
    if photo is None:
        raise NotFoundError(resource="photo", resource_id=photo_id)
    content = await blob_store.read(photo.storage_key)
    return Response(
        content=content,
        media_type=photo.content_type,
        headers={"Cache-Control": "public, max-age=86400"},
    )
