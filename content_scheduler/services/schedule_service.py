# content_scheduler/services/schedule_service.py
from typing import List, Optional
import uuid

import structlog
from sqlmodel.ext.asyncio.session import AsyncSession

from content_scheduler.errors import ScheduleNotFoundError
from content_scheduler.infrastructure.content_repo import ContentRepository
from content_scheduler.infrastructure.schedules_repo import ScheduleRepository
from content_scheduler.models.generated_content import GeneratedContent
from content_scheduler.models.schedule import Schedule, ScheduleStatus
from content_scheduler.schemas.schedule_schema import ScheduleCreate
from content_scheduler.schemas.schedule_settings import normalize_schedule
from content_scheduler.utils import utcnow

logger = structlog.get_logger(__name__)


class ScheduleService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.schedules = ScheduleRepository(session)
        self.content = ContentRepository(session)

    async def create_schedule(self, payload: ScheduleCreate) -> Schedule:
        now = utcnow()
        schedule = Schedule(
            user_id=payload.user_id,
            task_id=payload.task_id,
            task_type=payload.task_type.value,
            name=payload.name,
            description=payload.description,
            prompt=payload.prompt,
            schedule_config=payload.schedule_config,
            generation_settings=payload.generation_settings,
            bucket_settings=payload.bucket_settings,
            status=ScheduleStatus.ACTIVE.value if payload.active else ScheduleStatus.PAUSED.value,
            created_at=now,
            updated_at=now,
            # a new active schedule is due on the next pass
            next_run=now if payload.active else None,
        )
        # reject settings the dispatcher could never read
        normalize_schedule(schedule)
        schedule = await self.schedules.create(schedule)
        logger.info("schedule_created", schedule_id=str(schedule.id), task_type=schedule.task_type, status=schedule.status)
        return schedule

    async def list_schedules(self, user_id: Optional[uuid.UUID] = None, task_id: Optional[uuid.UUID] = None) -> List[Schedule]:
        return await self.schedules.list_schedules(user_id=user_id, task_id=task_id)

    async def get_schedule(self, schedule_id: uuid.UUID) -> Schedule:
        schedule = await self.schedules.get_by_id(schedule_id)
        if schedule is None:
            raise ScheduleNotFoundError(schedule_id)
        return schedule

    async def pause_schedule(self, schedule_id: uuid.UUID) -> Schedule:
        await self.get_schedule(schedule_id)
        await self.schedules.pause(schedule_id)
        logger.info("schedule_paused", schedule_id=str(schedule_id))
        return await self.get_schedule(schedule_id)

    async def resume_schedule(self, schedule_id: uuid.UUID) -> Schedule:
        await self.get_schedule(schedule_id)
        await self.schedules.activate(schedule_id, next_run=utcnow())
        logger.info("schedule_resumed", schedule_id=str(schedule_id))
        return await self.get_schedule(schedule_id)

    async def delete_schedule(self, schedule_id: uuid.UUID) -> None:
        if not await self.schedules.delete_by_id(schedule_id):
            raise ScheduleNotFoundError(schedule_id)
        logger.info("schedule_deleted", schedule_id=str(schedule_id))

    async def list_content(self, schedule_id: uuid.UUID) -> List[GeneratedContent]:
        await self.get_schedule(schedule_id)
        return await self.content.list_by_schedule(schedule_id)
