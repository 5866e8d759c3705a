"""Single-flight guards so one video/record is not processed twice at once.

- `SingleFlight`: in-process; concurrent callers for a key share one task.
- `ClaimStore`: cross-worker claims (`SET key 1 NX EX ttl` on Redis).
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Dict, Iterator, Protocol, TypeVar

import redis
from redis.exceptions import RedisError

T = TypeVar("T")


class ProcessingInProgress(RuntimeError):
    """Another worker currently holds the claim for this key."""

    def __init__(self, key: str):
        super().__init__(f"Processing already in progress for {key}")
        self.key = key


class SingleFlight:
    """Collapse concurrent calls for the same key onto one running task."""

    def __init__(self) -> None:
        self._inflight: Dict[str, asyncio.Future[Any]] = {}

    def in_flight(self, key: str) -> bool:
        return key in self._inflight

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        existing = self._inflight.get(key)
        if existing is not None:
            return await asyncio.shield(existing)
        task = asyncio.ensure_future(factory())
        self._inflight[key] = task
        task.add_done_callback(lambda _t, k=key: self._inflight.pop(k, None))
        return await asyncio.shield(task)


class ClaimStore(Protocol):
    def claim(self, key: str, ttl_seconds: int | None = None) -> bool: ...  # noqa: D401
    def release(self, key: str) -> None: ...  # noqa: D401


class InMemoryClaimStore:
    """Claims held in process memory (tests/local runs); TTL is not enforced."""

    def __init__(self) -> None:
        self._set: set[str] = set()

    def claim(self, key: str, ttl_seconds: int | None = None) -> bool:
        if key in self._set:
            return False
        self._set.add(key)
        return True

    def release(self, key: str) -> None:
        self._set.discard(key)


class _RedisLikeClient(Protocol):
    def set(self, name: str, value: str, *, ex: int | None = None, nx: bool | None = None) -> bool | None: ...
    def delete(self, *names: str) -> int: ...


class RedisClaimStore:
    """Redis-backed claims.

    - claim: `SET key 1 NX EX <ttl>` -> True only for the first claimant
    - release: `DEL key`

    The TTL bounds how long a crashed worker can block a record.
    """

    def __init__(self, client: _RedisLikeClient, *, prefix: str = "inflight", default_ttl_seconds: int | None = None) -> None:
        self._client = client
        self._prefix = prefix
        self._default_ttl = default_ttl_seconds

    def _format(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    def claim(self, key: str, ttl_seconds: int | None = None) -> bool:
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        return bool(self._client.set(self._format(key), "1", ex=ttl, nx=True))

    def release(self, key: str) -> None:
        self._client.delete(self._format(key))


@contextmanager
def claimed(store: ClaimStore, key: str, ttl_seconds: int | None = None) -> Iterator[None]:
    """Hold the claim for `key` for the duration of the block."""
    if not store.claim(key, ttl_seconds):
        raise ProcessingInProgress(key)
    try:
        yield
    finally:
        store.release(key)


def build_claim_store(redis_url: str, *, ttl_seconds: int, logger: logging.Logger | None = None) -> ClaimStore:
    """Prefer Redis; fall back to memory when the server does not answer."""
    log = logger or logging.getLogger(__name__)
    client = redis.Redis.from_url(redis_url, socket_connect_timeout=0.2)
    try:
        client.ping()
    except RedisError:
        log.info("inflight.claims.memory", extra={"reason": "redis_ping_failed"})
        return InMemoryClaimStore()
    log.info("inflight.claims.redis", extra={"redis_url": redis_url})
    return RedisClaimStore(client, prefix="inflight", default_ttl_seconds=ttl_seconds)
