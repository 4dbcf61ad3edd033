# content_scheduler/services/dispatcher.py
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Union
import uuid

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from content_scheduler.config import Settings
from content_scheduler.errors import ScheduleConfigError, UnknownContentTypeError, UnsupportedContentTypeError
from content_scheduler.infrastructure.bucket_repo import BucketImageRepository
from content_scheduler.infrastructure.content_repo import ContentRepository
from content_scheduler.infrastructure.jobs_repo import GenerationJobRepository
from content_scheduler.infrastructure.redis_cache import DispatchLock, DispatchLockError
from content_scheduler.infrastructure.replicate_client import ReplicateClient, ReplicateError
from content_scheduler.infrastructure.schedules_repo import ScheduleRepository
from content_scheduler.models.schedule import Schedule
from content_scheduler.schemas.schedule_schema import DispatchPassResult, ScheduleResult
from content_scheduler.schemas.schedule_settings import ContentType, NormalizedSchedule, normalize_schedule
from content_scheduler.services.generation import GenerationRoutines, RoutineResult
from content_scheduler.services.guards import DurationExpiryGuard, RunLimitGuard
from content_scheduler.services.selector import ScheduleSelector
from content_scheduler.utils import utcnow

logger = structlog.get_logger(__name__)

Handler = Callable[[NormalizedSchedule, uuid.UUID], Awaitable[RoutineResult]]


class Dispatcher:
    """
    One dispatch pass: select due schedules, run the guards, hand each
    schedule to the routine for its content type and reschedule on success.

    A failure is confined to its schedule. A failed dispatch leaves
    last_run/next_run untouched, so the schedule is due again on the next pass.
    """

    def __init__(
        self,
        session: AsyncSession,
        replicate: ReplicateClient,
        settings: Settings,
        lock: Optional[DispatchLock] = None,
    ):
        self.session = session
        self.settings = settings
        self.lock = lock or DispatchLock(None)

        self.schedules = ScheduleRepository(session)
        self.content = ContentRepository(session)
        self.jobs = GenerationJobRepository(session)
        self.selector = ScheduleSelector(self.schedules, batch_size=settings.dispatch_batch_size)
        self.duration_guard = DurationExpiryGuard(self.schedules)
        self.limit_guard = RunLimitGuard(self.schedules, self.content, windowed_types=settings.windowed_limit_types)
        self.routines = GenerationRoutines(replicate, self.content, BucketImageRepository(session), settings)

        # None marks a content type this pathway refuses to generate
        self.handlers: Dict[ContentType, Optional[Handler]] = {
            ContentType.IMAGE_GENERATION: self.routines.generate_image,
            ContentType.PRINT_ON_SHIRT: self.routines.generate_print_on_shirt,
            ContentType.VIDEO_GENERATION: self.routines.generate_video,
            ContentType.JOURNAL: None,
        }
        missing = set(ContentType) - set(self.handlers)
        if missing:
            raise RuntimeError(f"no dispatch handler for: {sorted(m.value for m in missing)}")

    async def run_pass(
        self,
        now: Optional[datetime] = None,
        content_types: Optional[Iterable[ContentType]] = None,
    ) -> DispatchPassResult:
        now = now or utcnow()
        # unsupported variants are only selected when a caller asks for them by name
        unsupported = [] if content_types is not None else [t for t, h in self.handlers.items() if h is None]
        # store failures here abort the whole pass
        due = await self.selector.select_due(now, content_types=content_types, exclude=unsupported)
        # snapshot rows before any commit/rollback can expire them
        prepared = [self.prepare(row) for row in due]

        results: List[ScheduleResult] = []
        for item in prepared:
            if isinstance(item, ScheduleResult):
                results.append(item)
            else:
                results.append(await self.process_schedule(item, now))
            if results[-1].outcome == "failed":
                await self._record_attempt(results[-1].schedule_id, now)

        processed = sum(1 for r in results if r.outcome == "dispatched")
        logger.info("dispatch_pass_finished", processed=processed, considered=len(due))
        return DispatchPassResult(processed_count=processed, total_considered=len(due), per_schedule_results=results)

    def prepare(self, row: Schedule) -> Union[NormalizedSchedule, ScheduleResult]:
        """Normalize a stored row, or describe why it cannot be dispatched."""
        try:
            schedule = normalize_schedule(row)
        except (UnknownContentTypeError, ValueError, TypeError) as exc:
            logger.warning("schedule_settings_invalid", schedule_id=str(row.id), task_type=row.task_type, error=str(exc))
            return ScheduleResult(
                schedule_id=row.id, content_type=row.task_type, outcome="failed", success=False, error=str(exc)
            )

        if self.handlers[schedule.content_type] is None:
            exc = UnsupportedContentTypeError(schedule.content_type.value)
            logger.warning("schedule_content_type_unsupported", schedule_id=str(row.id), task_type=row.task_type)
            return self._failed(schedule, str(exc))
        return schedule

    async def process_schedule(self, schedule: NormalizedSchedule, now: datetime) -> ScheduleResult:
        schedule_id = schedule.id
        try:
            acquired = await self.lock.acquire(schedule_id)
        except DispatchLockError as exc:
            logger.warning("dispatch_lock_error", schedule_id=str(schedule_id), error=str(exc))
            return self._failed(schedule, str(exc))
        if not acquired:
            return ScheduleResult(
                schedule_id=schedule_id,
                content_type=schedule.content_type.value,
                outcome="skipped",
                success=False,
                reason="dispatch already in progress in another pass",
            )

        try:
            return await self._guard_and_dispatch(schedule, now)
        except Exception as exc:
            await self.session.rollback()
            logger.exception("schedule_dispatch_error", schedule_id=str(schedule_id), error=str(exc))
            return self._failed(schedule, str(exc))
        finally:
            await self.lock.release(schedule_id)

    async def _guard_and_dispatch(self, schedule: NormalizedSchedule, now: datetime) -> ScheduleResult:
        for guard in (self.duration_guard, self.limit_guard):
            decision = await guard.check(schedule, now)
            if not decision.allowed:
                return ScheduleResult(
                    schedule_id=schedule.id,
                    content_type=schedule.content_type.value,
                    outcome="paused",
                    success=True,
                    reason=decision.reason,
                )

        job = await self.jobs.create_queued(schedule.id, schedule.user_id)
        await self.jobs.mark_processing(job)
        handler = self.handlers[schedule.content_type]
        job_id = job.id

        try:
            result = await handler(schedule, job_id)
        except (ScheduleConfigError, ReplicateError) as exc:
            await self.jobs.mark_failed(job, str(exc))
            logger.warning("schedule_dispatch_failed", schedule_id=str(schedule.id), job_id=str(job_id), error=str(exc))
            return self._failed(schedule, str(exc), job_id=job_id)
        except Exception as exc:
            # rollback expires the loaded job, so fail it by id
            await self.session.rollback()
            message = f"Dispatch error: {exc}"
            logger.exception("schedule_dispatch_error", schedule_id=str(schedule.id), job_id=str(job_id), error=str(exc))
            await self.jobs.fail_by_id(job_id, message)
            return self._failed(schedule, message, job_id=job_id)

        if not result.ok:
            message = f"{len(result.errors)} of {len(result.records)} submissions failed: {result.errors[0]}"
            await self.jobs.mark_failed(job, message)
            logger.warning("schedule_dispatch_partial_failure", schedule_id=str(schedule.id), job_id=str(job.id), error=message)
            return self._failed(schedule, message, job_id=job.id, records_created=len(result.records))

        await self.jobs.mark_completed(job, {"outputs_submitted": result.submitted})
        next_run = now + timedelta(minutes=schedule.config.interval_minutes)
        await self.schedules.mark_run(schedule.id, last_run=now, next_run=next_run)
        logger.info(
            "schedule_dispatched",
            schedule_id=str(schedule.id),
            job_id=str(job.id),
            content_type=schedule.content_type.value,
            submitted=result.submitted,
            next_run=next_run.isoformat(),
        )
        return ScheduleResult(
            schedule_id=schedule.id,
            content_type=schedule.content_type.value,
            outcome="dispatched",
            success=True,
            job_id=job.id,
            records_created=len(result.records),
        )

    async def _record_attempt(self, schedule_id: uuid.UUID, now: datetime) -> None:
        try:
            await self.schedules.mark_attempt(schedule_id, now)
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.warning("schedule_attempt_not_recorded", schedule_id=str(schedule_id), error=str(exc))

    @staticmethod
    def _failed(schedule: NormalizedSchedule, error: str, job_id=None, records_created: int = 0) -> ScheduleResult:
        return ScheduleResult(
            schedule_id=schedule.id,
            content_type=schedule.content_type.value,
            outcome="failed",
            success=False,
            job_id=job_id,
            records_created=records_created,
            error=error,
        )
