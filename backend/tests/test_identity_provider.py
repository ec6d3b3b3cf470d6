"""
PaintSnap Backend — Firebase Identity Provider Tests
======================================================

What:  Exception mapping of FirebaseIdentityProvider, with the two SDK calls
       (`verify_id_token`, `get_user`) patched. No network access.

What we test:
    ✅ valid token → FederatedIdentity built from record + claims
    ✅ invalid / expired token → 401
    ✅ SDK outage and certificate fetch failure → 502
    ✅ unknown uid → 404
    ✅ slow SDK → 504
    ✅ not started → 502
"""

import time
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from firebase_admin import auth, exceptions

from paintsnap.exceptions import (
    DependencyError,
    DependencyTimeoutError,
    NotFoundError,
    UnauthorizedError,
)
from paintsnap.services.identity_provider import FirebaseIdentityProvider


@pytest.fixture
def provider(settings):
    p = FirebaseIdentityProvider(settings)
    # Stands in for the initialized SDK app; the SDK calls themselves are patched
    p._app = MagicMock(name="firebase_app")
    return p


def record(email="erin@example.com", verified=True, name="Erin"):
    return SimpleNamespace(email=email, email_verified=verified, display_name=name, photo_url=None)


class TestVerifyToken:

    @pytest.mark.asyncio
    async def test_valid_token(self, provider):
        with patch.object(auth, "verify_id_token", return_value={"uid": "fb-1"}) as verify, \
             patch.object(auth, "get_user", return_value=record()) as get_user:

            identity = await provider.verify_token("good-token")

        assert identity.uid == "fb-1"
        assert identity.email == "erin@example.com"
        assert identity.email_verified is True
        assert identity.display_name == "Erin"
        verify.assert_called_once_with("good-token", app=provider._app)
        get_user.assert_called_once_with("fb-1", app=provider._app)

    @pytest.mark.asyncio
    async def test_claims_fill_missing_record_fields(self, provider):
        claims = {"uid": "fb-1", "email": "claim@example.com", "name": "From Claims"}
        with patch.object(auth, "verify_id_token", return_value=claims), \
             patch.object(auth, "get_user", return_value=record(email=None, verified=False, name=None)):

            identity = await provider.verify_token("good-token")

        assert identity.email == "claim@example.com"
        assert identity.display_name == "From Claims"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        auth.InvalidIdTokenError("bad signature"),
        auth.ExpiredIdTokenError("expired", cause=None),
        ValueError("Illegal ID token provided"),
    ])
    async def test_rejected_token_is_unauthorized(self, provider, error):
        with patch.object(auth, "verify_id_token", side_effect=error):
            with pytest.raises(UnauthorizedError):
                await provider.verify_token("bad-token")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        auth.CertificateFetchError("cannot fetch certs", cause=None),
        exceptions.UnavailableError("backend down"),
    ])
    async def test_sdk_failure_is_dependency_error(self, provider, error):
        with patch.object(auth, "verify_id_token", side_effect=error):
            with pytest.raises(DependencyError) as exc_info:
                await provider.verify_token("token")
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_unknown_user(self, provider):
        with patch.object(auth, "verify_id_token", return_value={"uid": "fb-gone"}), \
             patch.object(auth, "get_user", side_effect=auth.UserNotFoundError("no user")):
            with pytest.raises(NotFoundError):
                await provider.verify_token("token")

    @pytest.mark.asyncio
    async def test_get_user_outage(self, provider):
        with patch.object(auth, "verify_id_token", return_value={"uid": "fb-1"}), \
             patch.object(auth, "get_user", side_effect=exceptions.InternalError("boom")):
            with pytest.raises(DependencyError):
                await provider.verify_token("token")

    @pytest.mark.asyncio
    async def test_timeout(self, provider):
        provider.timeout = 0.05

        def slow(*args, **kwargs):
            time.sleep(0.5)
            return {"uid": "fb-1"}

        with patch.object(auth, "verify_id_token", side_effect=slow), \
             patch.object(auth, "get_user", return_value=record()):
            with pytest.raises(DependencyTimeoutError) as exc_info:
                await provider.verify_token("token")
        assert exc_info.value.status_code == 504

    @pytest.mark.asyncio
    async def test_empty_token(self, provider):
        with pytest.raises(UnauthorizedError):
            await provider.verify_token("")

    @pytest.mark.asyncio
    async def test_not_started(self, settings):
        with pytest.raises(DependencyError):
            await FirebaseIdentityProvider(settings).verify_token("token")


class TestLifecycle:

    def test_start_and_close(self, settings):
        p = FirebaseIdentityProvider(settings)
        fake_app = MagicMock(name="firebase_app")
        with patch("paintsnap.services.identity_provider.credentials.Certificate") as cert, \
             patch("paintsnap.services.identity_provider.firebase_admin.initialize_app",
                   return_value=fake_app) as init, \
             patch("paintsnap.services.identity_provider.firebase_admin.delete_app") as delete:

            assert p.ready is False
            p.start()
            assert p.ready is True
            cert.assert_called_once()
            assert init.call_args.kwargs["name"].startswith("paintsnap-")

            p.close()
            delete.assert_called_once_with(fake_app)
            assert p.ready is False
