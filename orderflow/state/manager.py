"""Redis-based state manager for order and task documents."""

from __future__ import annotations

import json
from typing import Any, Callable

import redis.asyncio as redis
from redis.asyncio.client import Pipeline
from redis.exceptions import WatchError

from orderflow.config import get_settings
from orderflow.errors import ConflictError
from orderflow.utils.logging import get_logger

logger = get_logger(__name__)


class StateManager:
    """Centralized document storage using Redis."""

    def __init__(self, redis_client: redis.Redis | None = None) -> None:
        settings = get_settings()
        self.redis_client: redis.Redis | None = redis_client
        self.redis_url = settings.redis_url
        self.max_retries = settings.cas_max_retries

    async def connect(self) -> None:
        """Establish Redis connection."""
        if self.redis_client is None:
            self.redis_client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info("redis_connected", url=self.redis_url)

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self.redis_client:
            await self.redis_client.aclose()
            self.redis_client = None
            logger.info("redis_disconnected")

    async def ping(self) -> bool:
        if not self.redis_client:
            await self.connect()

        return bool(await self.redis_client.ping())

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Set a value in Redis with optional TTL."""
        if not self.redis_client:
            await self.connect()

        # Serialize complex objects to JSON
        if isinstance(value, (dict, list)):
            value = json.dumps(value)

        await self.redis_client.set(key, value, ex=ttl)
        logger.debug("state_set", key=key, ttl=ttl)

    async def get(self, key: str) -> Any:
        """Get a value from Redis."""
        if not self.redis_client:
            await self.connect()

        return self._decode(await self.redis_client.get(key))

    async def get_many(self, keys: list[str]) -> list[Any]:
        """Get several values in one round trip, preserving order."""
        if not keys:
            return []
        if not self.redis_client:
            await self.connect()

        return [self._decode(value) for value in await self.redis_client.mget(keys)]

    async def delete(self, key: str) -> None:
        """Delete a key from Redis."""
        if not self.redis_client:
            await self.connect()

        await self.redis_client.delete(key)
        logger.debug("state_deleted", key=key)

    async def exists(self, key: str) -> bool:
        """Check if a key exists."""
        if not self.redis_client:
            await self.connect()

        return bool(await self.redis_client.exists(key))

    async def sadd(self, key: str, *members: str) -> None:
        """Add members to a set."""
        if not self.redis_client:
            await self.connect()

        await self.redis_client.sadd(key, *members)

    async def smembers(self, key: str) -> set[str]:
        """Get all members of a set."""
        if not self.redis_client:
            await self.connect()

        return set(await self.redis_client.smembers(key))

    async def publish(self, channel: str, message: str) -> None:
        """Publish a message to a channel."""
        if not self.redis_client:
            await self.connect()

        await self.redis_client.publish(channel, message)
        logger.debug("message_published", channel=channel)

    async def increment(self, key: str, amount: int = 1) -> int:
        """Increment a counter."""
        if not self.redis_client:
            await self.connect()

        return await self.redis_client.incrby(key, amount)

    async def create(
        self,
        key: str,
        value: dict[str, Any],
        extra_writes: Callable[[Pipeline], None] | None = None,
    ) -> None:
        """Write a new document together with its index entries in one transaction."""
        if not self.redis_client:
            await self.connect()

        async with self.redis_client.pipeline(transaction=True) as pipe:
            pipe.set(key, json.dumps(value))
            if extra_writes:
                extra_writes(pipe)
            await pipe.execute()

        logger.debug("state_created", key=key)

    async def compare_and_swap(
        self,
        key: str,
        apply: Callable[[Any], dict[str, Any] | None],
        extra_writes: Callable[[Pipeline, dict[str, Any]], None] | None = None,
    ) -> dict[str, Any] | None:
        """
        Conditionally update a JSON document using WATCH/MULTI/EXEC.

        ``apply`` receives the current document (or None) and returns the new
        document, returns None to leave it untouched, or raises to abort.
        When another client writes the key between the read and EXEC, Redis
        discards the transaction and ``apply`` is re-evaluated against the
        fresh document, so its precondition is always checked against the
        state that is actually replaced.

        Args:
            key: Document key
            apply: Precondition check and mutation
            extra_writes: Queues index updates inside the same transaction

        Returns:
            The document as written, or None when nothing was written
        """
        if not self.redis_client:
            await self.connect()

        for attempt in range(1, self.max_retries + 1):
            async with self.redis_client.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(key)
                    current = self._decode(await pipe.get(key))

                    updated = apply(current)
                    if updated is None:
                        await pipe.unwatch()
                        return None

                    pipe.multi()
                    pipe.set(key, json.dumps(updated))
                    if extra_writes:
                        extra_writes(pipe, updated)
                    await pipe.execute()
                    return updated

                except WatchError:
                    logger.debug("cas_retry", key=key, attempt=attempt)
                    continue

        logger.warning("cas_retries_exhausted", key=key, attempts=self.max_retries)
        raise ConflictError(f"Concurrent updates to {key} did not settle", key=key)

    @staticmethod
    def _decode(value: Any) -> Any:
        if value is None:
            return None
        # Try to deserialize JSON
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return value


# Global state manager instance
_state_manager: StateManager | None = None


async def get_state_manager() -> StateManager:
    """Get the global state manager instance."""
    global _state_manager
    if _state_manager is None:
        _state_manager = StateManager()
        await _state_manager.connect()
    return _state_manager
