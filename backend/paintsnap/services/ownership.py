"""
PaintSnap Backend — Ownership Guard
=====================================

What:  Per-request check that the authenticated user owns a target entity.
How:   Compares the entity's own stored owner id. It does not walk up the
       chain: the entity store keeps every child's owner equal to its
       parent's, so the row's own `user_id` is authoritative.
Who:   Called by the entity store before updates/deletes and by routes
       before reads.
"""

from typing import Any, Optional

from paintsnap.exceptions import ForbiddenError, NotFoundError


def authorize(user_id: int, entity: Any) -> bool:
    """True when `entity` exists and belongs to `user_id`."""
    if entity is None:
        return False
    return getattr(entity, "user_id", None) == user_id


def require_owner(
    user_id: int,
    entity: Optional[Any],
    resource: str,
    resource_id: Optional[Any] = None,
) -> Any:
    """
    Return `entity` if `user_id` owns it.

    Raises:
        NotFoundError:  entity is None
        ForbiddenError: entity belongs to someone else
    """
    if entity is None:
        raise NotFoundError(resource=resource, resource_id=resource_id)
    if not authorize(user_id, entity):
        raise ForbiddenError(resource=resource, resource_id=resource_id)
    return entity
