# content_scheduler/dependencies/services.py
from typing import Optional

from fastapi import Depends, HTTPException, status

from content_scheduler.config import Settings, get_settings
from content_scheduler.infrastructure.redis_cache import DispatchLock, create_redis_client
from content_scheduler.infrastructure.replicate_client import ReplicateClient, ReplicateError
from content_scheduler.infrastructure.storage_client import StorageClient, StorageError

_lock: Optional[DispatchLock] = None


def get_app_settings() -> Settings:
    return get_settings()


def get_replicate_client(settings: Settings = Depends(get_app_settings)) -> ReplicateClient:
    try:
        return ReplicateClient(
            settings.replicate_api_token,
            base_url=settings.replicate_base_url,
            timeout=settings.replicate_timeout_seconds,
        )
    except ReplicateError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def get_storage_client(settings: Settings = Depends(get_app_settings)) -> StorageClient:
    try:
        return StorageClient(
            settings.storage_url,
            settings.storage_service_key,
            bucket=settings.storage_bucket,
            timeout=settings.storage_timeout_seconds,
        )
    except StorageError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def get_dispatch_lock(settings: Settings = Depends(get_app_settings)) -> DispatchLock:
    # one redis pool per process
    global _lock
    if _lock is None:
        _lock = DispatchLock(create_redis_client(settings), ttl_seconds=settings.dispatch_lock_ttl_seconds)
    return _lock
