"""
PaintSnap Backend — Federated Identity Provider
=================================================

What:  Verifies Firebase ID tokens and fetches the matching user record.
Why:   The web client signs in with Firebase; the backend only trusts a
       token after the Admin SDK has checked its signature and expiry.
How:   `IdentityProvider` is the interface the app depends on.
       `FirebaseIdentityProvider` implements it with firebase_admin. The
       SDK is blocking, so calls run in a worker thread under a hard
       timeout. SDK failures are mapped by exception type:

    ┌──────────────────────────────────┬──────────────────────────┐
    │ firebase_admin exception         │ raised as                │
    ├──────────────────────────────────┼──────────────────────────┤
    │ auth.InvalidIdTokenError (+sub)  │ UnauthorizedError   401  │
    │ ValueError (malformed token arg) │ UnauthorizedError   401  │
    │ auth.UserNotFoundError           │ NotFoundError       404  │
    │ auth.CertificateFetchError       │ DependencyError     502  │
    │ exceptions.FirebaseError         │ DependencyError     502  │
    │ timeout                          │ DependencyTimeout   504  │
    └──────────────────────────────────┴──────────────────────────┘

Who:   Built by create_app(); started and closed by the lifespan handler.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import firebase_admin
from firebase_admin import auth, credentials, exceptions

from paintsnap.config import Settings
from paintsnap.exceptions import (
    DependencyError,
    DependencyTimeoutError,
    NotFoundError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

DEPENDENCY_NAME = "identity provider"


@dataclass(frozen=True)
class FederatedIdentity:
    """Profile of a verified federated user."""
    uid: str
    email: Optional[str] = None
    email_verified: bool = False
    display_name: Optional[str] = None
    photo_url: Optional[str] = None


class IdentityProvider(ABC):
    """
    Interface for federated token verification.

    Implementations must raise only PaintSnapError subclasses from
    `verify_token`, so routes never see SDK-specific exceptions.
    """

    def start(self) -> None:
        """Acquire SDK resources. Called once at application startup."""

    def close(self) -> None:
        """Release SDK resources. Called once at application shutdown."""

    @property
    def ready(self) -> bool:
        return True

    @abstractmethod
    async def verify_token(self, id_token: str) -> FederatedIdentity:
        """Verify `id_token` and return the provider's user profile."""


class FirebaseIdentityProvider(IdentityProvider):
    """
    firebase_admin-backed provider.

    The SDK app is named per instance so several apps (tests, workers) can
    coexist in one process without touching the SDK's default app.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.timeout = settings.identity_timeout_seconds
        self._app: Optional[firebase_admin.App] = None

    @property
    def ready(self) -> bool:
        return self._app is not None

    def start(self) -> None:
        if self._app is not None:
            return
        if self.settings.firebase_credentials_file:
            cred = credentials.Certificate(self.settings.firebase_credentials_file)
        else:
            cred = credentials.Certificate({
                "type": "service_account",
                "project_id": self.settings.firebase_project_id,
                "client_email": self.settings.firebase_client_email,
                "private_key": self.settings.firebase_private_key,
                "token_uri": "https://oauth2.googleapis.com/token",
            })
        options = {}
        if self.settings.firebase_project_id:
            options["projectId"] = self.settings.firebase_project_id
        self._app = firebase_admin.initialize_app(cred, options, name=f"paintsnap-{id(self)}")
        logger.info("Firebase identity provider initialized (project=%s)", self.settings.firebase_project_id)

    def close(self) -> None:
        if self._app is None:
            return
        firebase_admin.delete_app(self._app)
        self._app = None
        logger.info("Firebase identity provider closed")

    async def verify_token(self, id_token: str) -> FederatedIdentity:
        if not id_token:
            raise UnauthorizedError("Missing identity token")
        if self._app is None:
            raise DependencyError(DEPENDENCY_NAME, "Identity provider is not initialized")
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._verify_blocking, id_token),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.error("Identity provider timed out after %.1fs", self.timeout)
            raise DependencyTimeoutError(DEPENDENCY_NAME, self.timeout)

    def _verify_blocking(self, id_token: str) -> FederatedIdentity:
        try:
            decoded = auth.verify_id_token(id_token, app=self._app)
        except auth.InvalidIdTokenError as e:
            logger.info("Rejected identity token: %s", str(e))
            raise UnauthorizedError(f"Invalid identity token: {e}")
        except auth.CertificateFetchError as e:
            logger.error("Could not fetch token signing certificates: %s", str(e))
            raise DependencyError(DEPENDENCY_NAME, context={"error_type": type(e).__name__})
        except ValueError as e:
            raise UnauthorizedError(f"Invalid identity token: {e}")
        except exceptions.FirebaseError as e:
            logger.error("Identity provider error during verification: %s", str(e))
            raise DependencyError(DEPENDENCY_NAME, context={"error_type": type(e).__name__})

        uid = decoded["uid"]
        try:
            record = auth.get_user(uid, app=self._app)
        except auth.UserNotFoundError:
            raise NotFoundError(resource="identity provider user", resource_id=uid)
        except exceptions.FirebaseError as e:
            logger.error("Identity provider error fetching user %s: %s", uid, str(e))
            raise DependencyError(DEPENDENCY_NAME, context={"error_type": type(e).__name__})

        return FederatedIdentity(
            uid=uid,
            email=record.email or decoded.get("email"),
            email_verified=bool(record.email_verified or decoded.get("email_verified")),
            display_name=record.display_name or decoded.get("name"),
            photo_url=record.photo_url or decoded.get("picture"),
        )
