# content_scheduler/infrastructure/bucket_repo.py
from typing import Iterable, List, Optional
import uuid

from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select

from content_scheduler.models.bucket_image import BucketImage


class BucketImageRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, image: BucketImage) -> BucketImage:
        self.session.add(image)
        await self.session.commit()
        await self.session.refresh(image)
        return image

    async def list_for_task(self, task_id: uuid.UUID, user_id: Optional[uuid.UUID] = None, task_type: Optional[str] = None) -> List[BucketImage]:
        q = select(BucketImage).where(BucketImage.task_id == task_id)
        if user_id is not None:
            q = q.where(BucketImage.user_id == user_id)
        if task_type is not None:
            q = q.where(BucketImage.task_type == task_type)
        res = await self.session.execute(q.order_by(BucketImage.created_at.desc()))
        return list(res.scalars().all())

    async def get_many(self, ids: Iterable[uuid.UUID]) -> List[BucketImage]:
        """Fetch images by id, keeping the order of ``ids``; unknown ids are dropped."""
        ids = list(ids)
        if not ids:
            return []
        res = await self.session.execute(select(BucketImage).where(BucketImage.id.in_(ids)))
        by_id = {img.id: img for img in res.scalars().all()}
        return [by_id[i] for i in ids if i in by_id]
