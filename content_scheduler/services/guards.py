# content_scheduler/services/guards.py
"""Pre-dispatch checks that may pause a schedule.

Both guards are deterministic: a schedule that trips one is paused (status
``paused``, ``next_run`` cleared) and skipped for the rest of the pass.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

import structlog

from content_scheduler.infrastructure.content_repo import ContentRepository
from content_scheduler.infrastructure.schedules_repo import ScheduleRepository
from content_scheduler.schemas.schedule_settings import ContentType, NormalizedSchedule

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class GuardDecision:
    allowed: bool
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "GuardDecision":
        return cls(allowed=True)


class DurationExpiryGuard:
    def __init__(self, schedules: ScheduleRepository):
        self.schedules = schedules

    async def check(self, schedule: NormalizedSchedule, now: datetime) -> GuardDecision:
        if not schedule.config.enabled:
            await self.schedules.pause(schedule.id)
            logger.info("schedule_paused_disabled", schedule_id=str(schedule.id))
            return GuardDecision(False, "schedule disabled in config")

        elapsed_hours = (now - schedule.created_at).total_seconds() / 3600
        if elapsed_hours >= schedule.config.duration_hours:
            await self.schedules.pause(schedule.id)
            logger.info(
                "schedule_paused_duration_reached",
                schedule_id=str(schedule.id),
                elapsed_hours=round(elapsed_hours, 2),
                duration_hours=schedule.config.duration_hours,
            )
            return GuardDecision(False, f"duration limit of {schedule.config.duration_hours:g} hours reached")

        return GuardDecision.allow()


class RunLimitGuard:
    def __init__(
        self,
        schedules: ScheduleRepository,
        content: ContentRepository,
        windowed_types: Iterable[str] = (ContentType.VIDEO_GENERATION.value,),
    ):
        self.schedules = schedules
        self.content = content
        self.windowed_types = {ContentType(t) for t in windowed_types}

    async def check(self, schedule: NormalizedSchedule, now: datetime) -> GuardDecision:
        since = None
        if schedule.content_type in self.windowed_types:
            since = now - timedelta(hours=schedule.config.duration_hours)

        count = await self.content.count_for_limit(schedule.id, schedule.classification, since=since)
        max_outputs = schedule.generation.max_outputs
        if count >= max_outputs:
            await self.schedules.pause(schedule.id)
            logger.info(
                "schedule_paused_limit_reached",
                schedule_id=str(schedule.id),
                count=count,
                max_outputs=max_outputs,
            )
            return GuardDecision(False, f"reached max outputs limit of {max_outputs}")

        logger.debug("run_limit_progress", schedule_id=str(schedule.id), count=count, max_outputs=max_outputs)
        return GuardDecision.allow()
