# content_scheduler/infrastructure/jobs_repo.py
from typing import Optional
import uuid

from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select
from sqlalchemy import update

from content_scheduler.models.generation_job import GenerationJob, JobStatus
from content_scheduler.utils import utcnow


class GenerationJobRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_queued(self, schedule_id: uuid.UUID, user_id: uuid.UUID) -> GenerationJob:
        job = GenerationJob(schedule_id=schedule_id, user_id=user_id, status=JobStatus.QUEUED.value)
        self.session.add(job)
        await self.session.commit()
        await self.session.refresh(job)
        return job

    async def get_by_id(self, id: uuid.UUID) -> Optional[GenerationJob]:
        q = select(GenerationJob).where(GenerationJob.id == id).execution_options(populate_existing=True)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def mark_processing(self, job: GenerationJob) -> GenerationJob:
        job.status = JobStatus.PROCESSING.value
        job.started_at = utcnow()
        return await self._save(job)

    async def mark_completed(self, job: GenerationJob, output_data: dict) -> GenerationJob:
        job.status = JobStatus.COMPLETED.value
        job.output_data = output_data
        job.completed_at = utcnow()
        return await self._save(job)

    async def mark_failed(self, job: GenerationJob, error_message: str) -> GenerationJob:
        job.status = JobStatus.FAILED.value
        job.error_message = error_message
        job.completed_at = utcnow()
        return await self._save(job)

    async def fail_by_id(self, id: uuid.UUID, error_message: str) -> None:
        """Fail a job without touching a loaded instance (e.g. after a rollback)."""
        now = utcnow()
        q = (
            update(GenerationJob)
            .where(GenerationJob.id == id)
            .values(status=JobStatus.FAILED.value, error_message=error_message, completed_at=now)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(q)
        await self.session.commit()

    async def _save(self, job: GenerationJob) -> GenerationJob:
        self.session.add(job)
        await self.session.commit()
        await self.session.refresh(job)
        return job
