# content_scheduler/services/selector.py
from typing import Iterable, List, Optional
from datetime import datetime

import structlog

from content_scheduler.infrastructure.schedules_repo import ScheduleRepository
from content_scheduler.models.schedule import Schedule
from content_scheduler.schemas.schedule_settings import ContentType

logger = structlog.get_logger(__name__)


class ScheduleSelector:
    """Picks the active schedules whose next_run has come, up to a batch cap."""

    def __init__(self, repo: ScheduleRepository, batch_size: int = 5):
        self.repo = repo
        self.batch_size = batch_size

    async def select_due(
        self,
        now: datetime,
        content_types: Optional[Iterable[ContentType]] = None,
        limit: Optional[int] = None,
        exclude: Iterable[ContentType] = (),
    ) -> List[Schedule]:
        task_types = [ContentType(c).value for c in content_types] if content_types is not None else None
        excluded = [ContentType(c).value for c in exclude]
        due = await self.repo.list_due(
            now,
            limit or self.batch_size,
            task_types=task_types,
            exclude_task_types=excluded,
        )
        logger.info("due_schedules_selected", count=len(due), task_types=task_types, excluded=excluded)
        return due
