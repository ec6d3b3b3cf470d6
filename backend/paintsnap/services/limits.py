"""
PaintSnap Backend — Account Limit Enforcer
============================================

What:  Per-tier quotas on areas, photos per area and tags per photo.
Why:   Free accounts are capped; premium and pro are effectively unlimited.
How:   Routes count the existing children of the container being written
       into, then call `enforce()` before the create (or before a photo move
       into another area). Quotas come from Settings.

Tier table (defaults):
    ┌──────────┬───────┬─────────────────┬────────────────┐
    │ tier     │ areas │ photos per area │ tags per photo │
    ├──────────┼───────┼─────────────────┼────────────────┤
    │ basic    │   5   │        3        │       5        │
    │ premium  │  999  │       999       │      999       │
    │ pro      │  999  │       999       │      999       │
    └──────────┴───────┴─────────────────┴────────────────┘
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from paintsnap.config import Settings
from paintsnap.exceptions import AccountLimitError

logger = logging.getLogger(__name__)

PREMIUM_TIERS = frozenset({"premium", "pro"})


class Resource(str, Enum):
    AREAS = "areas"
    PHOTOS = "photos"
    TAGS = "tags"


@dataclass(frozen=True)
class Quotas:
    max_areas: int
    max_photos_per_area: int
    max_tags_per_photo: int

    def for_resource(self, resource: Resource) -> int:
        return {
            Resource.AREAS: self.max_areas,
            Resource.PHOTOS: self.max_photos_per_area,
            Resource.TAGS: self.max_tags_per_photo,
        }[resource]


class AccountLimitEnforcer:
    """
    Decides whether a user may add one more of a resource.

    Example:
        enforcer.enforce(user, Resource.AREAS, current_count=5)
        → AccountLimitError for a basic user with the default quota
    """

    def __init__(self, free: Quotas, premium: Quotas, upgrade_url: str):
        self.free = free
        self.premium = premium
        self.upgrade_url = upgrade_url

    @classmethod
    def from_settings(cls, settings: Settings) -> "AccountLimitEnforcer":
        unlimited = settings.premium_limit
        return cls(
            free=Quotas(
                max_areas=settings.free_max_areas,
                max_photos_per_area=settings.free_max_photos_per_area,
                max_tags_per_photo=settings.free_max_tags_per_photo,
            ),
            premium=Quotas(unlimited, unlimited, unlimited),
            upgrade_url=settings.upgrade_url,
        )

    def is_premium(self, user) -> bool:
        return user.account_type in PREMIUM_TIERS

    def quotas_for(self, user) -> Quotas:
        if self.is_premium(user):
            return self.premium
        if user.account_type != "basic":
            logger.warning(
                "Unknown account_type %r for user %s; applying basic quotas",
                user.account_type,
                user.id,
            )
        return self.free

    def check_quota(self, user, resource: Resource, current_count: int) -> bool:
        """True when one more `resource` fits within the user's quota."""
        return current_count < self.quotas_for(user).for_resource(resource)

    def enforce(self, user, resource: Resource, current_count: int) -> None:
        """
        Raises:
            AccountLimitError: the quota is already used up (HTTP 403)
        """
        if self.check_quota(user, resource, current_count):
            return
        limit = self.quotas_for(user).for_resource(resource)
        logger.info(
            "Quota reached for user %s: %s %d/%d (%s)",
            user.id,
            resource.value,
            current_count,
            limit,
            user.account_type,
        )
        raise AccountLimitError(
            resource=resource.value,
            limit=limit,
            account_type=user.account_type,
            upgrade_url=self.upgrade_url,
        )

    def remaining(
        self,
        user,
        area_count: int,
        photo_count: Optional[int] = None,
        tag_count: Optional[int] = None,
    ) -> Dict[str, object]:
        """
        Remaining quota. Photo and tag counts are per container, so they are
        only reported when the caller counted a specific area or photo.
        """
        quotas = self.quotas_for(user)
        return {
            "account_type": user.account_type,
            "is_premium": self.is_premium(user),
            "max_areas": quotas.max_areas,
            "max_photos_per_area": quotas.max_photos_per_area,
            "max_tags_per_photo": quotas.max_tags_per_photo,
            "areas_remaining": max(quotas.max_areas - area_count, 0),
            "photos_remaining": (
                None if photo_count is None
                else max(quotas.max_photos_per_area - photo_count, 0)
            ),
            "tags_remaining": (
                None if tag_count is None
                else max(quotas.max_tags_per_photo - tag_count, 0)
            ),
            "upgrade_url": self.upgrade_url,
        }
