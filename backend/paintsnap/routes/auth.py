"""
PaintSnap Backend — Auth Route Handlers
=========================================

What:  Local registration/login, Firebase token verification, logout,
       current user and remaining quota.
How:   Handlers delegate to DualAuthReconciler and only move the user id
       in and out of the signed session cookie.
Who:   Called by the web client's sign-in screens and account menu.

Rate limit: register, login and verify-token sit behind the per-IP
AuthRateLimitMiddleware.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from paintsnap.dependencies import (
    get_current_user,
    get_limits,
    get_reconciler,
    get_store,
)
from paintsnap.models import Area, Photo, Tag, User
from paintsnap.schemas.auth import (
    LimitsResponse,
    LoginRequest,
    RegisterRequest,
    UserResponse,
    VerifyTokenRequest,
)
from paintsnap.schemas.common import ErrorResponse, MessageResponse
from paintsnap.services.auth_service import (
    DualAuthReconciler,
    begin_authentication,
    clear_session,
    establish_session,
)
from paintsnap.services.entity_store import EntityStore
from paintsnap.services.limits import AccountLimitEnforcer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post(
    "/register",
    status_code=201,
    response_model=UserResponse,
    responses={
        400: {"description": "Invalid input or username/email taken", "model": ErrorResponse},
        429: {"description": "Too many attempts", "model": ErrorResponse},
    },
    summary="Create a local account",
)
async def register(
    payload: RegisterRequest,
    request: Request,
    reconciler: DualAuthReconciler = Depends(get_reconciler),
) -> UserResponse:
    user = await reconciler.register(
        username=payload.username,
        email=payload.email,
        password=payload.password,
        display_name=payload.display_name,
    )
    establish_session(request.session, user)
    return UserResponse.model_validate(user)


@router.post(
    "/login",
    response_model=UserResponse,
    responses={
        401: {"description": "Invalid username or password", "model": ErrorResponse},
        429: {"description": "Too many attempts", "model": ErrorResponse},
    },
    summary="Sign in with username (or email) and password",
)
async def login(
    payload: LoginRequest,
    request: Request,
    reconciler: DualAuthReconciler = Depends(get_reconciler),
) -> UserResponse:
    begin_authentication(request.session)
    try:
        user = await reconciler.authenticate_local(payload.username, payload.password)
    except Exception:
        clear_session(request.session)
        raise
    establish_session(request.session, user)
    return UserResponse.model_validate(user)


@router.post(
    "/verify-token",
    response_model=UserResponse,
    responses={
        401: {"description": "Invalid or expired ID token", "model": ErrorResponse},
        404: {"description": "Identity provider has no such user", "model": ErrorResponse},
        502: {"description": "Identity provider failure", "model": ErrorResponse},
        504: {"description": "Identity provider timeout", "model": ErrorResponse},
    },
    summary="Exchange a Firebase ID token for a session",
    description=(
        "Verifies the token with Firebase, finds or creates the matching user, "
        "and starts a cookie session. Calling it again with the same account "
        "returns the same user."
    ),
)
async def verify_token(
    payload: VerifyTokenRequest,
    request: Request,
    reconciler: DualAuthReconciler = Depends(get_reconciler),
) -> UserResponse:
    begin_authentication(request.session)
    try:
        user = await reconciler.authenticate_federated(payload.token)
    except Exception:
        clear_session(request.session)
        raise
    establish_session(request.session, user)
    return UserResponse.model_validate(user)


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="End the current session",
)
async def logout(request: Request) -> MessageResponse:
    clear_session(request.session)
    return MessageResponse(message="Logged out successfully")


@router.get(
    "/user",
    response_model=UserResponse,
    responses={401: {"description": "Not authenticated", "model": ErrorResponse}},
    summary="Get the signed-in user",
)
async def current_user(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(user)


@router.get(
    "/limits",
    response_model=LimitsResponse,
    responses={
        401: {"description": "Not authenticated", "model": ErrorResponse},
        404: {"description": "Area or photo not found", "model": ErrorResponse},
    },
    summary="Remaining account quota",
    description=(
        "Areas remaining is always reported. Pass `areaId` to also get photos "
        "remaining in that area, and `photoId` for tags remaining on that photo."
    ),
)
async def remaining_limits(
    area_id: Optional[int] = Query(default=None, alias="areaId"),
    photo_id: Optional[int] = Query(default=None, alias="photoId"),
    user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
    limits: AccountLimitEnforcer = Depends(get_limits),
) -> LimitsResponse:
    area_count = await store.count_by_parent(Area, user.id, parent_model=User)
    photo_count = None
    tag_count = None
    if area_id is not None:
        await store.get_owned(Area, area_id, user.id)
        photo_count = await store.count_by_parent(Photo, area_id)
    if photo_id is not None:
        await store.get_owned(Photo, photo_id, user.id)
        tag_count = await store.count_by_parent(Tag, photo_id)
    return LimitsResponse(**limits.remaining(user, area_count, photo_count, tag_count))
