# content_scheduler/infrastructure/schedules_repo.py
from typing import Iterable, List, Optional
from datetime import datetime
import uuid

from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select
from sqlalchemy import delete, nulls_first, update

from content_scheduler.models.schedule import Schedule, ScheduleStatus
from content_scheduler.models.generated_content import GeneratedContent
from content_scheduler.models.generation_job import GenerationJob
from content_scheduler.utils import utcnow


class ScheduleRepository:
    """
    Repository for Schedule rows.
    All methods are async and expect an AsyncSession to be injected from the outside.
    State transitions are single-row updates keyed by id.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, schedule: Schedule) -> Schedule:
        self.session.add(schedule)
        await self.session.commit()
        await self.session.refresh(schedule)
        return schedule

    async def get_by_id(self, id: uuid.UUID) -> Optional[Schedule]:
        q = select(Schedule).where(Schedule.id == id).execution_options(populate_existing=True)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list_schedules(self, user_id: Optional[uuid.UUID] = None, task_id: Optional[uuid.UUID] = None) -> List[Schedule]:
        q = select(Schedule)
        if user_id is not None:
            q = q.where(Schedule.user_id == user_id)
        if task_id is not None:
            q = q.where(Schedule.task_id == task_id)
        res = await self.session.execute(q.order_by(Schedule.created_at))
        return list(res.scalars().all())

    async def list_due(
        self,
        now: datetime,
        limit: int,
        task_types: Optional[Iterable[str]] = None,
        exclude_task_types: Optional[Iterable[str]] = None,
    ) -> List[Schedule]:
        """
        Due schedules, least recently attempted first, then oldest next_run.
        A schedule whose dispatch keeps failing moves behind the others.
        """
        q = select(Schedule).where(
            Schedule.status == ScheduleStatus.ACTIVE.value,
            Schedule.next_run.is_not(None),
            Schedule.next_run <= now,
        )
        if task_types is not None:
            q = q.where(Schedule.task_type.in_(list(task_types)))
        if exclude_task_types:
            q = q.where(Schedule.task_type.not_in(list(exclude_task_types)))
        q = q.order_by(nulls_first(Schedule.last_attempt_at.asc()), Schedule.next_run).limit(limit)
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def pause(self, id: uuid.UUID) -> None:
        await self._update(id, status=ScheduleStatus.PAUSED.value, next_run=None)

    async def activate(self, id: uuid.UUID, next_run: datetime) -> None:
        await self._update(id, status=ScheduleStatus.ACTIVE.value, next_run=next_run)

    async def mark_run(self, id: uuid.UUID, last_run: datetime, next_run: datetime) -> None:
        await self._update(id, last_run=last_run, next_run=next_run, last_attempt_at=last_run)

    async def mark_attempt(self, id: uuid.UUID, attempted_at: datetime) -> None:
        """Record a failed dispatch attempt; status, last_run and next_run stay as they are."""
        await self._update(id, last_attempt_at=attempted_at)

    async def delete_by_id(self, id: uuid.UUID) -> bool:
        """
        Delete a schedule together with its content and job rows.
        Returns False when no such schedule exists.
        """
        if await self.get_by_id(id) is None:
            return False
        await self.session.execute(delete(GeneratedContent).where(GeneratedContent.schedule_id == id))
        await self.session.execute(delete(GenerationJob).where(GenerationJob.schedule_id == id))
        await self.session.execute(delete(Schedule).where(Schedule.id == id))
        await self.session.commit()
        return True

    async def _update(self, id: uuid.UUID, **values) -> None:
        values["updated_at"] = utcnow()
        await self.session.execute(update(Schedule).where(Schedule.id == id).values(**values))
        await self.session.commit()
