# content_scheduler/routers/bucket_router.py
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from content_scheduler.dependencies.auth import require_trigger_token
from content_scheduler.dependencies.db import get_session_dep
from content_scheduler.infrastructure.bucket_repo import BucketImageRepository
from content_scheduler.models.bucket_image import BucketImage
from content_scheduler.schemas.schedule_schema import BucketImageCreate, BucketImageRead
from content_scheduler.schemas.schedule_settings import ContentType

router = APIRouter(prefix="/bucket-images", tags=["bucket-images"], dependencies=[Depends(require_trigger_token)])


@router.post("/", response_model=BucketImageRead, status_code=201)
async def register_bucket_image(payload: BucketImageCreate, session: AsyncSession = Depends(get_session_dep)):
    image = BucketImage(
        user_id=payload.user_id,
        task_id=payload.task_id,
        task_type=payload.task_type.value,
        filename=payload.filename,
        image_url=payload.image_url,
        storage_path=payload.storage_path,
    )
    return await BucketImageRepository(session).create(image)


@router.get("/", response_model=List[BucketImageRead])
async def list_bucket_images(
    task_id: uuid.UUID,
    task_type: Optional[ContentType] = None,
    session: AsyncSession = Depends(get_session_dep),
):
    repo = BucketImageRepository(session)
    return await repo.list_for_task(task_id, task_type=task_type.value if task_type else None)
