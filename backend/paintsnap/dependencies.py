"""
PaintSnap Backend — FastAPI Dependencies
==========================================

What:  Wires request handlers to the objects `create_app()` placed on
       `app.state`, and resolves the authenticated user.
How:   Each dependency reads from `request.app.state`; tests swap any of
       them by building the app with their own objects.

Authentication order (get_current_user):
    1. Session cookie with a user id → load that user
       (a stale id clears the session → 401)
    2. `Authorization: Bearer <Firebase ID token>` → verified on this
       request, resolved to the canonical user; the session is untouched
    3. Neither → 401
"""

import logging
from functools import partial
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from paintsnap.config import Settings
from paintsnap.database import get_db_session, queue_blob_release
from paintsnap.exceptions import UnauthorizedError
from paintsnap.models import User
from paintsnap.services.auth_service import SESSION_USER_KEY, DualAuthReconciler, clear_session
from paintsnap.services.blob_store import BlobStore
from paintsnap.services.entity_store import EntityStore
from paintsnap.services.identity_provider import IdentityProvider
from paintsnap.services.limits import AccountLimitEnforcer

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity_provider


def get_limits(request: Request) -> AccountLimitEnforcer:
    return request.app.state.limits


def get_store(session: AsyncSession = Depends(get_db_session)) -> EntityStore:
    """Request-scoped store; orphaned blobs are released after the request commits."""
    return EntityStore(session, on_orphaned_blobs=partial(queue_blob_release, session))


def get_reconciler(
    store: EntityStore = Depends(get_store),
    identity_provider: IdentityProvider = Depends(get_identity_provider),
) -> DualAuthReconciler:
    return DualAuthReconciler(store, identity_provider)


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_user(
    request: Request,
    store: EntityStore = Depends(get_store),
    reconciler: DualAuthReconciler = Depends(get_reconciler),
) -> User:
    """
    Resolve the authenticated user for a protected endpoint.

    Raises:
        UnauthorizedError: no session and no bearer token, stale session,
                           or an invalid token
    """
    user_id = request.session.get(SESSION_USER_KEY)
    if user_id is not None:
        user = await store.get_by_id(User, user_id)
        if user is None:
            logger.warning("Session references missing user %s; clearing session", user_id)
            clear_session(request.session)
            raise UnauthorizedError("Your session is no longer valid. Please sign in again.")
        return user

    token = _bearer_token(request)
    if token:
        return await reconciler.authenticate_federated(token, record_login=False)

    raise UnauthorizedError()
