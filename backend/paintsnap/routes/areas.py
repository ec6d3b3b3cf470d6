"""
PaintSnap Backend — Area Route Handlers
=========================================

What:  CRUD for areas and the photo listing of one area.
How:   Creating an area counts the user's existing areas and runs them past
       the account limit enforcer first. An area created without a
       `projectId` goes into the user's default project.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response

from paintsnap.dependencies import get_current_user, get_limits, get_store
from paintsnap.exceptions import NotFoundError, ValidationError
from paintsnap.models import Area, User
from paintsnap.schemas.area import AreaCreate, AreaResponse, AreaSummaryResponse, AreaUpdate
from paintsnap.schemas.common import ErrorResponse
from paintsnap.schemas.photo import PhotoSummaryResponse
from paintsnap.services.entity_store import EntityStore
from paintsnap.services.limits import AccountLimitEnforcer, Resource

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/areas", tags=["Areas"])

OWNER_ERRORS = {
    401: {"description": "Not authenticated", "model": ErrorResponse},
    403: {"description": "Area belongs to another user", "model": ErrorResponse},
    404: {"description": "Area not found", "model": ErrorResponse},
}


@router.get(
    "",
    response_model=List[AreaSummaryResponse],
    summary="List your areas",
    description="Alphabetical, with photo count and the newest photo's URL.",
)
async def list_areas(
    project_id: Optional[int] = Query(default=None, alias="projectId"),
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
) -> List[AreaSummaryResponse]:
    summaries = await store.list_area_summaries(user.id, project_id=project_id)
    return [AreaSummaryResponse.from_summary(s) for s in summaries]


@router.post(
    "",
    status_code=201,
    response_model=AreaResponse,
    responses={
        400: {"description": "Invalid input", "model": ErrorResponse},
        403: {"description": "Area limit reached, or project not yours", "model": ErrorResponse},
        404: {"description": "Project not found", "model": ErrorResponse},
    },
    summary="Create an area",
)
async def create_area(
    payload: AreaCreate,
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
    limits: AccountLimitEnforcer = Depends(get_limits),
) -> AreaResponse:
    current = await store.count_by_parent(Area, user.id, parent_model=User)
    limits.enforce(user, Resource.AREAS, current)

    project_id = payload.project_id
    if project_id is None:
        project_id = (await store.ensure_default_project(user)).id

    area = await store.create(Area, {
        "user_id": user.id,
        "project_id": project_id,
        "name": payload.name,
    })
    return AreaResponse.model_validate(area)


@router.get("/{area_id}", response_model=AreaResponse, responses=OWNER_ERRORS, summary="Get an area")
async def get_area(
    area_id: int,
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
) -> AreaResponse:
    area = await store.get_owned(Area, area_id, user.id)
    return AreaResponse.model_validate(area)


@router.patch("/{area_id}", response_model=AreaResponse, responses=OWNER_ERRORS, summary="Rename or re-home an area")
async def update_area(
    area_id: int,
    payload: AreaUpdate,
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
) -> AreaResponse:
    patch = payload.model_dump(exclude_unset=True)
    if "project_id" in patch and patch["project_id"] is None:
        raise ValidationError("An area must belong to a project", field="projectId")
    area = await store.update(Area, area_id, patch, owner_id=user.id)
    return AreaResponse.model_validate(area)


@router.delete(
    "/{area_id}",
    status_code=204,
    responses=OWNER_ERRORS,
    summary="Delete an area with all its photos and tags",
)
async def delete_area(
    area_id: int,
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
) -> Response:
    if not await store.delete(Area, area_id, owner_id=user.id):
        raise NotFoundError(resource="area", resource_id=area_id)
    return Response(status_code=204)


@router.get(
    "/{area_id}/photos",
    response_model=List[PhotoSummaryResponse],
    responses=OWNER_ERRORS,
    summary="List the photos of an area",
    description="Newest first, with tag count and area name.",
)
async def list_area_photos(
    area_id: int,
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
) -> List[PhotoSummaryResponse]:
    await store.get_owned(Area, area_id, user.id)
    summaries = await store.list_photo_summaries(user.id, area_id=area_id)
    return [PhotoSummaryResponse.from_summary(s) for s in summaries]
