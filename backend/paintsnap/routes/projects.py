"""
PaintSnap Backend — Project Route Handlers
============================================

What:  CRUD for projects plus the area listing of one project.
How:   Thin handlers over EntityStore. Every read is owner-checked; deletes
       cascade through areas, photos and tags.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Response

from paintsnap.dependencies import get_current_user, get_store
from paintsnap.exceptions import NotFoundError
from paintsnap.models import Project, User
from paintsnap.schemas.area import AreaSummaryResponse
from paintsnap.schemas.common import ErrorResponse
from paintsnap.schemas.project import ProjectCreate, ProjectResponse, ProjectUpdate
from paintsnap.services.entity_store import EntityStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["Projects"])

OWNER_ERRORS = {
    401: {"description": "Not authenticated", "model": ErrorResponse},
    403: {"description": "Project belongs to another user", "model": ErrorResponse},
    404: {"description": "Project not found", "model": ErrorResponse},
}


@router.get("", response_model=List[ProjectResponse], summary="List your projects")
async def list_projects(
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
) -> List[ProjectResponse]:
    projects = await store.list_by_parent(Project, user.id, owner_id=user.id)
    return [ProjectResponse.model_validate(p) for p in projects]


@router.post(
    "",
    status_code=201,
    response_model=ProjectResponse,
    responses={400: {"description": "Invalid input", "model": ErrorResponse}},
    summary="Create a project",
)
async def create_project(
    payload: ProjectCreate,
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
) -> ProjectResponse:
    project = await store.create(Project, {
        "user_id": user.id,
        "name": payload.name,
        "description": payload.description,
        "is_default": False,
    })
    return ProjectResponse.model_validate(project)


@router.get("/{project_id}", response_model=ProjectResponse, responses=OWNER_ERRORS, summary="Get a project")
async def get_project(
    project_id: int,
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
) -> ProjectResponse:
    project = await store.get_owned(Project, project_id, user.id)
    return ProjectResponse.model_validate(project)


@router.patch("/{project_id}", response_model=ProjectResponse, responses=OWNER_ERRORS, summary="Rename or describe a project")
async def update_project(
    project_id: int,
    payload: ProjectUpdate,
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
) -> ProjectResponse:
    project = await store.update(
        Project, project_id, payload.model_dump(exclude_unset=True), owner_id=user.id
    )
    return ProjectResponse.model_validate(project)


@router.delete(
    "/{project_id}",
    status_code=204,
    responses=OWNER_ERRORS,
    summary="Delete a project with all its areas, photos and tags",
)
async def delete_project(
    project_id: int,
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
) -> Response:
    if not await store.delete(Project, project_id, owner_id=user.id):
        raise NotFoundError(resource="project", resource_id=project_id)
    return Response(status_code=204)


@router.get(
    "/{project_id}/areas",
    response_model=List[AreaSummaryResponse],
    responses=OWNER_ERRORS,
    summary="List the areas of a project",
)
async def list_project_areas(
    project_id: int,
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
) -> List[AreaSummaryResponse]:
    await store.get_owned(Project, project_id, user.id)
    summaries = await store.list_area_summaries(user.id, project_id=project_id)
    return [AreaSummaryResponse.from_summary(s) for s in summaries]
