"""
PaintSnap Backend — Dual Auth Reconciler
==========================================

What:  Maps local credentials or a Firebase ID token onto one User row.
Why:   Every downstream check works on a single canonical user id,
       whichever way the person signed in.
How:
    Local path:
        username or email + password → passlib pbkdf2_sha256 verify
        (constant-time) → one generic error for every failure mode
    Federated path:
        ID token → IdentityProvider.verify_token → find User by firebase_uid
        → else link a local account with the same verified email
        → else create a new User
        Verifying the same token twice never creates a second row.
    Both paths refresh last_login and make sure a default project exists.

Session lifecycle (signed cookie, Starlette SessionMiddleware):

    anonymous ──login/verify──▶ authenticating ──success──▶ authenticated
        ▲                             │                          │
        └──────────failure────────────┘                          │
        └───────────────────────logout───────────────────────────┘
"""

import logging
from enum import Enum
from typing import MutableMapping, Optional

from passlib.context import CryptContext

from paintsnap.exceptions import UnauthorizedError, ValidationError
from paintsnap.models import User
from paintsnap.models.base import utcnow
from paintsnap.services.entity_store import EntityStore
from paintsnap.services.identity_provider import FederatedIdentity, IdentityProvider

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# Verified against when the account does not exist, so an unknown username
# costs the same as a wrong password
_DUMMY_HASH = pwd_context.hash("paintsnap-dummy-password")

INVALID_CREDENTIALS = "Invalid username or password"

SESSION_USER_KEY = "user_id"
SESSION_STATE_KEY = "auth_state"


# ══════════════════════════════════════════════════════════════════════════
# Session state helpers
# ══════════════════════════════════════════════════════════════════════════

class SessionState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


def session_state(session: MutableMapping) -> SessionState:
    if session.get(SESSION_USER_KEY) is not None:
        return SessionState.AUTHENTICATED
    if session.get(SESSION_STATE_KEY) == SessionState.AUTHENTICATING.value:
        return SessionState.AUTHENTICATING
    return SessionState.ANONYMOUS


def begin_authentication(session: MutableMapping) -> None:
    session.pop(SESSION_USER_KEY, None)
    session[SESSION_STATE_KEY] = SessionState.AUTHENTICATING.value


def establish_session(session: MutableMapping, user: User) -> None:
    session[SESSION_USER_KEY] = user.id
    session[SESSION_STATE_KEY] = SessionState.AUTHENTICATED.value


def clear_session(session: MutableMapping) -> None:
    session.clear()


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


# ══════════════════════════════════════════════════════════════════════════
# Reconciler
# ══════════════════════════════════════════════════════════════════════════

class DualAuthReconciler:
    """Resolves either credential type to the canonical User row."""

    def __init__(self, store: EntityStore, identity_provider: IdentityProvider):
        self.store = store
        self.identity_provider = identity_provider

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        display_name: Optional[str] = None,
    ) -> User:
        """
        Create a local account and its default project.

        Raises:
            ValidationError: username or email already in use
        """
        email = email.strip().lower()
        clash = await self.store.username_or_email_taken(username, email)
        if clash == "username":
            raise ValidationError("Username already exists", field="username")
        if clash == "email":
            raise ValidationError("Email already exists", field="email")

        user = await self.store.create(User, {
            "username": username,
            "email": email,
            "password_hash": hash_password(password),
            "display_name": display_name or username,
            "account_type": "basic",
            "last_login": utcnow(),
        })
        await self.store.ensure_default_project(user)
        logger.info("Registered local user %s (id=%s)", username, user.id)
        return user

    async def authenticate_local(self, identifier: str, password: str) -> User:
        """
        Check a username/email + password pair.

        Raises:
            UnauthorizedError: always with the same message, whether the
                               account is missing, federated-only, or the
                               password is wrong
        """
        user = await self.store.find_user_by_login(identifier)
        if user is None or not user.password_hash:
            pwd_context.verify(password, _DUMMY_HASH)
            logger.info("Local login failed for %r", identifier)
            raise UnauthorizedError(INVALID_CREDENTIALS)

        valid, new_hash = pwd_context.verify_and_update(password, user.password_hash)
        if not valid:
            logger.info("Local login failed for %r", identifier)
            raise UnauthorizedError(INVALID_CREDENTIALS)

        patch = {"last_login": utcnow()}
        if new_hash:
            patch["password_hash"] = new_hash
        await self.store.update(User, user.id, patch, owner_id=user.id)
        await self.store.ensure_default_project(user)
        logger.info("Local login succeeded for user %s", user.id)
        return user

    async def authenticate_federated(self, id_token: str, record_login: bool = True) -> User:
        """
        Verify a federated ID token and return the matching user.

        Raises:
            UnauthorizedError:      token invalid or expired
            NotFoundError:          provider has no record for the token's uid
            DependencyError:        provider failure
            DependencyTimeoutError: provider did not answer in time
        """
        identity = await self.identity_provider.verify_token(id_token)
        user = await self.store.find_user_by_firebase_uid(identity.uid)
        if user is None:
            user = await self._link_or_create(identity)
            record_login = True

        if record_login:
            await self.store.update(User, user.id, {"last_login": utcnow()}, owner_id=user.id)
            await self.store.ensure_default_project(user)
        return user

    async def _link_or_create(self, identity: FederatedIdentity) -> User:
        email = identity.email.strip().lower() if identity.email else None
        if email:
            existing = await self.store.find_user_by_login(email)
            if existing is not None and existing.email == email:
                if identity.email_verified and existing.firebase_uid is None:
                    await self.store.update(
                        User, existing.id, {"firebase_uid": identity.uid}, owner_id=existing.id
                    )
                    logger.info("Linked firebase uid %s to user %s", identity.uid, existing.id)
                    return existing
                # Email belongs to another account; keep the new row without it
                email = None

        user = await self.store.create(User, {
            "firebase_uid": identity.uid,
            "email": email,
            "display_name": identity.display_name or (email.split("@")[0] if email else None),
            "photo_url": identity.photo_url,
            "account_type": "basic",
        })
        logger.info("Created federated user %s for uid %s", user.id, identity.uid)
        return user
