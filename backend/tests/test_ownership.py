"""
PaintSnap Backend — Ownership Guard Tests
===========================================

What we test:
    ✅ owner passes, anyone else is refused
    ✅ a missing entity is "not found" rather than "forbidden"
"""

from types import SimpleNamespace

import pytest

from paintsnap.exceptions import ForbiddenError, NotFoundError
from paintsnap.services.ownership import authorize, require_owner


class TestAuthorize:

    def test_owner(self):
        assert authorize(7, SimpleNamespace(user_id=7)) is True

    def test_other_user(self):
        assert authorize(8, SimpleNamespace(user_id=7)) is False

    def test_missing_entity(self):
        assert authorize(7, None) is False

    def test_entity_without_owner(self):
        assert authorize(7, object()) is False


class TestRequireOwner:

    def test_returns_entity(self):
        area = SimpleNamespace(user_id=1, name="Kitchen")
        assert require_owner(1, area, "area", 3) is area

    def test_missing_raises_not_found(self):
        with pytest.raises(NotFoundError) as exc_info:
            require_owner(1, None, "photo", 42)
        assert exc_info.value.context["resource_id"] == "42"

    def test_foreign_raises_forbidden(self):
        with pytest.raises(ForbiddenError) as exc_info:
            require_owner(2, SimpleNamespace(user_id=1), "tag", 5)
        assert exc_info.value.status_code == 403
