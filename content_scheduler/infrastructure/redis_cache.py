# content_scheduler/infrastructure/redis_cache.py
import secrets
from typing import Optional

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from content_scheduler.config import Settings

logger = structlog.get_logger(__name__)


class DispatchLockError(Exception):
    pass


def create_redis_client(settings: Settings) -> Optional[aioredis.Redis]:
    if not settings.redis_url:
        return None
    return aioredis.from_url(settings.redis_url, decode_responses=True)


class DispatchLock:
    """
    Per-schedule lease held while one pass guards and dispatches a schedule.
    Concurrent passes that lose the SET NX skip the schedule instead of
    counting and submitting in parallel.
    """

    def __init__(self, redis_client: Optional[aioredis.Redis], ttl_seconds: int = 300, prefix: str = "dispatch-lock"):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix
        self._tokens: dict = {}

    def _key(self, schedule_id) -> str:
        return f"{self.prefix}:{schedule_id}"

    async def acquire(self, schedule_id) -> bool:
        if self.redis is None:
            return True
        token = secrets.token_hex(8)
        try:
            ok = await self.redis.set(self._key(schedule_id), token, nx=True, ex=self.ttl_seconds)
        except (RedisError, OSError) as exc:
            raise DispatchLockError(f"dispatch lock unavailable: {exc}") from exc
        if not ok:
            logger.info("dispatch_lock_busy", schedule_id=str(schedule_id))
            return False
        self._tokens[str(schedule_id)] = token
        return True

    async def release(self, schedule_id) -> None:
        if self.redis is None:
            return
        token = self._tokens.pop(str(schedule_id), None)
        key = self._key(schedule_id)
        if token is None:
            return
        # only drop a lease we still own; an expired one may belong to another pass
        try:
            if await self.redis.get(key) == token:
                await self.redis.delete(key)
        except (RedisError, OSError) as exc:
            # the lease expires on its own after ttl_seconds
            logger.warning("dispatch_lock_release_failed", schedule_id=str(schedule_id), error=str(exc))
