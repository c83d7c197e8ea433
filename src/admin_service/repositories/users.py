"""Admin user lookups for session authentication."""
from __future__ import annotations

from uuid import UUID

from asyncpg import Pool, Record  # type: ignore[import-untyped]

from admin_service.domain.models import User
from admin_service.repositories.base import BaseRepository


class UserRepository(BaseRepository):
    def __init__(self, pool: Pool):
        super().__init__(pool)

    @staticmethod
    def _to_model(record: Record) -> User:
        return User.model_validate(dict(record))

    async def get(self, user_id: UUID) -> User | None:
        record = await self._fetchrow("SELECT * FROM users WHERE id = $1", user_id)
        return self._to_model(record) if record else None

    async def get_by_username(self, username: str) -> User | None:
        record = await self._fetchrow("SELECT * FROM users WHERE username = $1", username)
        return self._to_model(record) if record else None

    async def create(self, *, username: str, email: str | None, password_hash: str, role: str) -> User:
        record = await self._fetchrow(
            """
            INSERT INTO users (username, email, password_hash, role)
            VALUES ($1, $2, $3, $4)
            RETURNING *
            """,
            username,
            email,
            password_hash,
            role,
        )
        assert record is not None
        return self._to_model(record)
