# content_scheduler/infrastructure/content_repo.py
from typing import List, Optional
from datetime import datetime
import uuid

from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select
from sqlalchemy import func, update

from content_scheduler.models.generated_content import GeneratedContent, GenerationStatus
from content_scheduler.utils import utcnow


class ContentRepository:
    """
    Repository for GeneratedContent rows.
    Terminal transitions are conditional on the row still being "processing",
    so a row never receives two terminal updates.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add_many(self, records: List[GeneratedContent]) -> List[GeneratedContent]:
        self.session.add_all(records)
        await self.session.commit()
        for record in records:
            await self.session.refresh(record)
        return records

    async def get_by_id(self, id: uuid.UUID) -> Optional[GeneratedContent]:
        q = select(GeneratedContent).where(GeneratedContent.id == id).execution_options(populate_existing=True)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list_by_schedule(self, schedule_id: uuid.UUID) -> List[GeneratedContent]:
        q = (
            select(GeneratedContent)
            .where(GeneratedContent.schedule_id == schedule_id)
            .order_by(GeneratedContent.created_at)
            .execution_options(populate_existing=True)
        )
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def count_for_limit(
        self,
        schedule_id: uuid.UUID,
        content_type: str,
        since: Optional[datetime] = None,
    ) -> int:
        """Count outputs that use up a schedule's quota (everything except failed)."""
        q = (
            select(func.count())
            .select_from(GeneratedContent)
            .where(
                GeneratedContent.schedule_id == schedule_id,
                GeneratedContent.content_type == content_type,
                GeneratedContent.generation_status != GenerationStatus.FAILED.value,
            )
        )
        if since is not None:
            q = q.where(GeneratedContent.created_at >= since)
        res = await self.session.execute(q)
        return int(res.scalar_one())

    async def list_processing(self, limit: int) -> List[GeneratedContent]:
        q = (
            select(GeneratedContent)
            .where(
                GeneratedContent.generation_status == GenerationStatus.PROCESSING.value,
                GeneratedContent.external_job_id.is_not(None),
            )
            .order_by(GeneratedContent.created_at)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def mark_completed(self, id: uuid.UUID, content_url: str, storage_path: str, meta: dict) -> bool:
        return await self._finish(
            id,
            generation_status=GenerationStatus.COMPLETED.value,
            content_url=content_url,
            storage_path=storage_path,
            meta=meta,
        )

    async def mark_failed(self, id: uuid.UUID, meta: Optional[dict], error_message: str) -> bool:
        meta = dict(meta or {})
        meta["error_message"] = error_message
        return await self._finish(id, generation_status=GenerationStatus.FAILED.value, meta=meta)

    async def _finish(self, id: uuid.UUID, **values) -> bool:
        values["updated_at"] = utcnow()
        q = (
            update(GeneratedContent)
            .where(
                GeneratedContent.id == id,
                GeneratedContent.generation_status == GenerationStatus.PROCESSING.value,
            )
            .values({getattr(GeneratedContent, key): value for key, value in values.items()})
            .execution_options(synchronize_session=False)
        )
        res = await self.session.execute(q)
        await self.session.commit()
        return res.rowcount == 1
