"""Admin session authentication: bcrypt passwords and JWT session cookies."""
from __future__ import annotations

import time
from typing import Any
from uuid import UUID

import bcrypt
import jwt  # type: ignore[import-untyped]
import structlog

from admin_service.core.exceptions import AuthError, PermissionDeniedError
from admin_service.domain.models import User
from admin_service.repositories.users import UserRepository
from admin_service.settings import Settings

logger = structlog.get_logger(__name__)

ADMIN_ROLES = frozenset({"Super Admin", "Admin", "Editor", "Moderator"})


def hash_password(password: str, *, rounds: int = 12) -> str:
    """Hash a password using bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    """Verify a password against a hash; malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except (ValueError, TypeError):
        return False


class AuthService:
    def __init__(self, users: UserRepository, settings: Settings):
        self._users = users
        self._settings = settings

    async def login(self, username: str, password: str) -> User:
        user = await self._users.get_by_username(username)
        if user is None or not verify_password(password, user.password_hash):
            logger.warning("admin login rejected", username=username)
            raise AuthError("Invalid username or password")
        self._require_admin(user)
        logger.info("admin logged in", user_id=str(user.id))
        return user

    def create_session_token(self, user: User) -> str:
        now = int(time.time())
        payload: dict[str, Any] = {
            "sub": str(user.id),
            "role": user.role,
            "iat": now,
            "exp": now + self._settings.session_ttl_sec,
        }
        return jwt.encode(payload, self._settings.session_secret, algorithm=self._settings.jwt_algorithm)

    def decode_session_token(self, token: str) -> dict[str, Any]:
        try:
            payload = jwt.decode(
                token,
                self._settings.session_secret,
                algorithms=[self._settings.jwt_algorithm],
            )
        except jwt.ExpiredSignatureError as exc:
            raise AuthError("Session expired") from exc
        except jwt.InvalidTokenError as exc:
            raise AuthError("Invalid session") from exc
        return dict(payload)

    async def authenticate(self, token: str | None) -> User:
        """Resolve the session cookie to an admin user."""
        if not token:
            raise AuthError("Authentication required")
        payload = self.decode_session_token(token)
        try:
            user_id = UUID(str(payload.get("sub")))
        except ValueError as exc:
            raise AuthError("Invalid session") from exc
        user = await self._users.get(user_id)
        if user is None:
            raise AuthError("Invalid session")
        self._require_admin(user)
        return user

    @staticmethod
    def _require_admin(user: User) -> None:
        if user.role not in ADMIN_ROLES:
            raise PermissionDeniedError("Admin access required")
