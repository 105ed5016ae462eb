"""Result storage supporting Redis and in-memory backends."""

# pylint: disable=missing-function-docstring

import logging
from typing import Callable, Optional, Protocol

import redis.asyncio as aioredis
from aiocache import SimpleMemoryCache
from pydantic import ValidationError
from redis.exceptions import RedisError

from dnscheck.core.models import ResultSet
from dnscheck.utils.exceptions import StoreError
from dnscheck.utils.namegen import generate_key

logger = logging.getLogger(__name__)

KEY_PREFIX = "dnscheck:result:"

# Attempts at finding an unused key before giving up
MAX_KEY_ATTEMPTS = 5


class StoreBackend(Protocol):
    """Protocol for key/value backends."""

    name: str

    async def get(self, key: str) -> Optional[str]: ...
    async def set(self, key: str, value: str, ttl: int) -> None: ...
    async def close(self) -> None: ...


class RedisBackend:
    """Redis backend."""

    name = "redis"

    def __init__(self, url: str):
        self._client = aioredis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
        )

    async def get(self, key: str) -> Optional[str]:
        return await self._client.get(key)

    async def set(self, key: str, value: str, ttl: int) -> None:
        await self._client.set(key, value, ex=ttl)

    async def close(self) -> None:
        await self._client.aclose()


class MemoryBackend:
    """In-process backend using aiocache, for single-instance deployments."""

    name = "memory"

    def __init__(self):
        self._cache = SimpleMemoryCache()

    async def get(self, key: str) -> Optional[str]:
        return await self._cache.get(key)

    async def set(self, key: str, value: str, ttl: int) -> None:
        await self._cache.set(key, value, ttl=ttl)

    async def close(self) -> None:
        await self._cache.close()


class ResultStore:
    """Saves lookup results under short random keys."""

    def __init__(
        self,
        backend: Optional[StoreBackend] = None,
        ttl: int = 2592000,
        key_factory: Callable[[], str] = generate_key,
    ):
        self._backend = backend
        self._ttl = ttl
        self._key_factory = key_factory

    def configure(self, use_redis: bool = False, redis_url: Optional[str] = None):
        """Configure the storage backend."""
        if use_redis and redis_url:
            self._backend = RedisBackend(redis_url)
        else:
            self._backend = MemoryBackend()

    @property
    def backend(self) -> StoreBackend:
        """The storage backend, defaulting to memory."""
        if self._backend is None:
            self._backend = MemoryBackend()

        return self._backend

    async def save(self, results: ResultSet) -> str:
        """
        Store ``results`` and return the key to fetch them with.

        Raises:
            StoreError: the backend failed or no free key was found.
        """
        payload = results.model_dump_json()

        try:
            for _ in range(MAX_KEY_ATTEMPTS):
                key = self._key_factory()

                if await self.backend.get(KEY_PREFIX + key) is not None:
                    continue

                await self.backend.set(KEY_PREFIX + key, payload, self._ttl)
                logger.info(f"Stored {len(results.answers)} answers as {key}")

                return key
        except RedisError as e:
            raise StoreError(f"Failed to store results: {e}") from e

        raise StoreError("Could not find a free result key")

    async def load(self, key: str) -> Optional[ResultSet]:
        """Fetch stored results. Returns None for unknown keys."""
        try:
            payload = await self.backend.get(KEY_PREFIX + key)
        except RedisError as e:
            raise StoreError(f"Failed to load results: {e}") from e

        if payload is None:
            return None

        try:
            return ResultSet.model_validate_json(payload)
        except ValidationError as e:
            raise StoreError(f"Stored result {key} is corrupt: {e}") from e

    async def close(self) -> None:
        if self._backend is not None:
            await self._backend.close()


# Default store instance
_result_store: Optional[ResultStore] = None


def get_result_store() -> ResultStore:
    """Get or create the default result store."""
    global _result_store

    if _result_store is None:
        _result_store = ResultStore()

    return _result_store


def init_store(
    use_redis: bool = False, redis_url: Optional[str] = None, ttl: int = 2592000
) -> ResultStore:
    """Initialize the default store with settings. Call at app startup."""
    global _result_store

    _result_store = ResultStore(ttl=ttl)
    _result_store.configure(use_redis, redis_url)

    return _result_store


def set_result_store(store: ResultStore) -> None:
    """Set a custom result store (useful for testing)."""
    global _result_store

    _result_store = store


def reset_result_store() -> None:
    """Reset the result store (useful for testing)."""
    global _result_store

    _result_store = None
