"""
Login sessions, stored in redis.

A session is a key auth_<token> holding the user id, with a fixed expiry. The existence
of the key is the only proof that a token is valid: logout deletes it, and redis removes
it when it expires. Looking a token up does not extend its lifetime.
"""

import uuid

import redis.asyncio as redis

SESSION_TTL = 60 * 60 * 24


class SessionStore:
    def __init__(self, client: redis.Redis, ttl: int = SESSION_TTL, prefix: str = "auth_"):
        self._redis = client
        self._ttl = ttl
        self._prefix = prefix

    def _key(self, token: str) -> str:
        return f"{self._prefix}{token}"

    async def create_session(self, user_id: str) -> str:
        """Create a new session for this user and return its token"""
        token = str(uuid.uuid4())
        await self._redis.set(self._key(token), user_id, ex=self._ttl)
        return token

    async def resolve(self, token: str | None) -> str | None:
        """Return the user id for this token, or None if the token is missing, expired or logged out"""
        if not token:
            return None
        return await self._redis.get(self._key(token))

    async def destroy(self, token: str | None) -> bool:
        """Delete the session. Returns False if there was no such session."""
        if not token:
            return False
        return await self._redis.delete(self._key(token)) > 0

    async def ttl(self, token: str) -> int:
        """Remaining lifetime of the session in seconds (negative if it does not exist)"""
        return await self._redis.ttl(self._key(token))
