"""Tests for due-schedule selection."""

from datetime import timedelta

from content_scheduler.infrastructure.schedules_repo import ScheduleRepository
from content_scheduler.schemas.schedule_settings import ContentType
from content_scheduler.services.selector import ScheduleSelector
from content_scheduler.utils import utcnow


async def test_selects_only_active_and_due(session, make_schedule):
    now = utcnow()
    due = await make_schedule()
    await make_schedule(status="paused", next_run=now - timedelta(minutes=5))
    await make_schedule(next_run=now + timedelta(minutes=5))
    await make_schedule(next_run=None)

    selected = await ScheduleSelector(ScheduleRepository(session)).select_due(now)

    assert [s.id for s in selected] == [due.id]


async def test_batch_is_capped_and_oldest_first(session, make_schedule):
    now = utcnow()
    created = [await make_schedule(next_run=now - timedelta(minutes=m)) for m in range(1, 8)]

    selected = await ScheduleSelector(ScheduleRepository(session), batch_size=5).select_due(now)

    assert len(selected) == 5
    oldest_first = sorted(created, key=lambda s: s.next_run)[:5]
    assert [s.id for s in selected] == [s.id for s in oldest_first]


async def test_content_type_filter(session, make_schedule):
    now = utcnow()
    await make_schedule("image-generation")
    video = await make_schedule("video-generation")

    selected = await ScheduleSelector(ScheduleRepository(session)).select_due(
        now, content_types=[ContentType.VIDEO_GENERATION]
    )

    assert [s.id for s in selected] == [video.id]


async def test_recently_attempted_schedules_sort_last(session, make_schedule):
    now = utcnow()
    attempted = await make_schedule(next_run=now - timedelta(minutes=30), last_attempt_at=now - timedelta(minutes=1))
    fresh = await make_schedule(next_run=now - timedelta(minutes=5))
    older_attempt = await make_schedule(next_run=now - timedelta(minutes=2), last_attempt_at=now - timedelta(minutes=20))

    selected = await ScheduleSelector(ScheduleRepository(session)).select_due(now)

    assert [s.id for s in selected] == [fresh.id, older_attempt.id, attempted.id]


async def test_excluded_content_types_are_not_selected(session, make_schedule):
    now = utcnow()
    await make_schedule("journal", next_run=now - timedelta(minutes=10))
    image = await make_schedule("image-generation")

    selected = await ScheduleSelector(ScheduleRepository(session)).select_due(now, exclude=[ContentType.JOURNAL])

    assert [s.id for s in selected] == [image.id]
