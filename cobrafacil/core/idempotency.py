import asyncio
import json
import logging
from typing import Any, Dict, NamedTuple, Optional, Tuple

import redis.asyncio as redis_async

from cobrafacil.core.config import settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "cobrafacil:idempotency:"

# Marker stored while the first request for a key is still running
IN_FLIGHT = "__in_flight__"

IN_FLIGHT_TTL = 5 * 60
RESPONSE_TTL = 24 * 3600


def payment_key(owner_id: str, loan_id: str, key: str) -> str:
    return f"payment:{owner_id}:{loan_id}:{key}"


class _Entry(NamedTuple):
    raw: str
    expire_at: float


class IdempotencyStore:
    """
    Reserve / complete / release protocol for `Idempotency-Key` requests.

    `reserve` is atomic: exactly one caller gets the key, every other caller
    sees either the stored response or the in-flight marker. Redis backs the
    store when REDIS_URL is configured (SET NX); otherwise entries live in
    this process behind an asyncio lock, which is enough for one worker.
    """

    def __init__(self, redis_url: Optional[str] = None):
        redis_url = redis_url if redis_url is not None else settings.REDIS_URL
        self._client = redis_async.from_url(redis_url, decode_responses=True) if redis_url else None
        self._entries: Dict[str, _Entry] = {}
        self._lock = asyncio.Lock()
        logger.info("Idempotency store backed by %s", "Redis" if self._client else "process memory")

    @staticmethod
    def _now() -> float:
        return asyncio.get_running_loop().time()

    def _purge_expired(self) -> None:
        now = self._now()
        for k in [k for k, entry in self._entries.items() if entry.expire_at <= now]:
            del self._entries[k]

    @staticmethod
    def _decode(key: str, raw: Optional[str]) -> Optional[Any]:
        if raw is None or raw == IN_FLIGHT:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Unreadable idempotency entry for %s", key)
            return None

    async def reserve(self, key: str, ttl_seconds: int = IN_FLIGHT_TTL) -> Tuple[bool, Optional[Any]]:
        """
        Returns (True, None) when the caller now owns `key`, (False, response)
        when a finished response is stored and (False, None) while another
        request holds the key.
        """
        if self._client is not None:
            redis_key = KEY_PREFIX + key
            if await self._client.set(redis_key, IN_FLIGHT, nx=True, ex=ttl_seconds):
                return True, None
            return False, self._decode(key, await self._client.get(redis_key))

        async with self._lock:
            self._purge_expired()
            entry = self._entries.get(key)
            if entry is None:
                self._entries[key] = _Entry(IN_FLIGHT, self._now() + ttl_seconds)
                return True, None
            return False, self._decode(key, entry.raw)

    async def complete(self, key: str, value: Any, ttl_seconds: int = RESPONSE_TTL) -> None:
        raw = json.dumps(value, default=str)
        if self._client is not None:
            await self._client.set(KEY_PREFIX + key, raw, ex=ttl_seconds)
            return
        async with self._lock:
            self._entries[key] = _Entry(raw, self._now() + ttl_seconds)

    async def release(self, key: str) -> None:
        if self._client is not None:
            await self._client.delete(KEY_PREFIX + key)
            return
        async with self._lock:
            self._entries.pop(key, None)


_STORE: Optional[IdempotencyStore] = None


def get_idempotency_store() -> IdempotencyStore:
    global _STORE
    if _STORE is None:
        _STORE = IdempotencyStore()
    return _STORE
