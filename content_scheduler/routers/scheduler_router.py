# content_scheduler/routers/scheduler_router.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from content_scheduler.config import Settings
from content_scheduler.dependencies.auth import require_trigger_token
from content_scheduler.dependencies.db import get_session_dep
from content_scheduler.dependencies.services import (
    get_app_settings,
    get_dispatch_lock,
    get_replicate_client,
    get_storage_client,
)
from content_scheduler.infrastructure.redis_cache import DispatchLock
from content_scheduler.infrastructure.replicate_client import ReplicateClient
from content_scheduler.infrastructure.storage_client import StorageClient
from content_scheduler.schemas.schedule_schema import CompletionPassResult, DispatchPassResult
from content_scheduler.services.completion_poller import CompletionPoller
from content_scheduler.services.dispatcher import Dispatcher

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/scheduler", tags=["scheduler"], dependencies=[Depends(require_trigger_token)])


@router.post("/dispatch", response_model=DispatchPassResult)
async def run_dispatch_pass(
    session: AsyncSession = Depends(get_session_dep),
    replicate: ReplicateClient = Depends(get_replicate_client),
    lock: DispatchLock = Depends(get_dispatch_lock),
    settings: Settings = Depends(get_app_settings),
):
    dispatcher = Dispatcher(session, replicate, settings, lock=lock)
    try:
        return await dispatcher.run_pass()
    except SQLAlchemyError as exc:
        logger.exception("dispatch_pass_store_error", error=str(exc))
        raise HTTPException(status_code=503, detail="schedule store unavailable")


@router.post("/completions", response_model=CompletionPassResult)
async def run_completion_pass(
    session: AsyncSession = Depends(get_session_dep),
    replicate: ReplicateClient = Depends(get_replicate_client),
    storage: StorageClient = Depends(get_storage_client),
    settings: Settings = Depends(get_app_settings),
):
    poller = CompletionPoller(session, replicate, storage, settings)
    try:
        return await poller.run_pass()
    except SQLAlchemyError as exc:
        logger.exception("completion_pass_store_error", error=str(exc))
        raise HTTPException(status_code=503, detail="content store unavailable")
