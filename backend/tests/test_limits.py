"""
PaintSnap Backend — Account Limit Tests
=========================================

What we test:
    ✅ basic accounts stop at the configured quota
    ✅ premium and pro accounts use the premium quota
    ✅ the error carries the upgrade URL for the client's prompt
    ✅ remaining() reports per-container counts only when asked
"""

from types import SimpleNamespace

import pytest

from paintsnap.config import Settings
from paintsnap.exceptions import AccountLimitError
from paintsnap.services.limits import AccountLimitEnforcer, Quotas, Resource


def user(account_type="basic"):
    return SimpleNamespace(id=1, account_type=account_type)


@pytest.fixture
def enforcer():
    return AccountLimitEnforcer(
        free=Quotas(max_areas=3, max_photos_per_area=3, max_tags_per_photo=5),
        premium=Quotas(999, 999, 999),
        upgrade_url="https://example.com/upgrade",
    )


class TestCheckQuota:

    def test_basic_user_under_quota(self, enforcer):
        assert enforcer.check_quota(user(), Resource.AREAS, 2) is True

    def test_basic_user_at_quota(self, enforcer):
        assert enforcer.check_quota(user(), Resource.AREAS, 3) is False

    @pytest.mark.parametrize("tier", ["premium", "pro"])
    def test_premium_tiers(self, enforcer, tier):
        assert enforcer.check_quota(user(tier), Resource.AREAS, 3) is True
        assert enforcer.check_quota(user(tier), Resource.TAGS, 998) is True
        assert enforcer.check_quota(user(tier), Resource.TAGS, 999) is False

    def test_unknown_tier_gets_basic_quotas(self, enforcer):
        assert enforcer.check_quota(user("enterprise"), Resource.PHOTOS, 3) is False


class TestEnforce:

    def test_allows_under_quota(self, enforcer):
        enforcer.enforce(user(), Resource.TAGS, 4)

    def test_denies_fourth_area(self, enforcer):
        with pytest.raises(AccountLimitError) as exc_info:
            enforcer.enforce(user(), Resource.AREAS, 3)

        err = exc_info.value
        assert err.status_code == 403
        assert err.error_code == "account_limit_reached"
        assert err.context["limit"] == 3
        assert err.context["resource"] == "areas"
        assert err.upgrade_url == "https://example.com/upgrade"


class TestFromSettings:

    def test_defaults(self):
        enforcer = AccountLimitEnforcer.from_settings(Settings(premium_limit=500))
        assert enforcer.free == Quotas(5, 3, 5)
        assert enforcer.premium == Quotas(500, 500, 500)


class TestRemaining:

    def test_only_areas_by_default(self, enforcer):
        result = enforcer.remaining(user(), area_count=1)
        assert result["areas_remaining"] == 2
        assert result["photos_remaining"] is None
        assert result["tags_remaining"] is None
        assert result["is_premium"] is False

    def test_never_negative(self, enforcer):
        result = enforcer.remaining(user(), area_count=10, photo_count=7, tag_count=0)
        assert result["areas_remaining"] == 0
        assert result["photos_remaining"] == 0
        assert result["tags_remaining"] == 5
