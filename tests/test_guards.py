"""Tests for the duration and run-limit guards."""

from datetime import timedelta

from content_scheduler.infrastructure.content_repo import ContentRepository
from content_scheduler.infrastructure.schedules_repo import ScheduleRepository
from content_scheduler.schemas.schedule_settings import normalize_schedule
from content_scheduler.services.guards import DurationExpiryGuard, RunLimitGuard
from content_scheduler.utils import utcnow


async def test_duration_expired_pauses(session, make_schedule):
    now = utcnow()
    row = await make_schedule(created_at=now - timedelta(hours=2), schedule_config={"duration_hours": 1})
    repo = ScheduleRepository(session)

    decision = await DurationExpiryGuard(repo).check(normalize_schedule(row), now)

    assert not decision.allowed
    assert "duration" in decision.reason
    stored = await repo.get_by_id(row.id)
    assert stored.status == "paused"
    assert stored.next_run is None


async def test_duration_within_window_allows(session, make_schedule):
    now = utcnow()
    row = await make_schedule(created_at=now - timedelta(minutes=30), schedule_config={"duration_hours": 1})

    decision = await DurationExpiryGuard(ScheduleRepository(session)).check(normalize_schedule(row), now)

    assert decision.allowed


async def test_disabled_config_pauses(session, make_schedule):
    row = await make_schedule(schedule_config={"enabled": False})
    repo = ScheduleRepository(session)

    decision = await DurationExpiryGuard(repo).check(normalize_schedule(row), utcnow())

    assert not decision.allowed
    assert (await repo.get_by_id(row.id)).status == "paused"


async def test_limit_reached_pauses(session, make_schedule, make_content):
    row = await make_schedule(generation_settings={"max_images": 3})
    await make_content(row, status="completed")
    await make_content(row, status="completed")
    await make_content(row, status="processing")
    schedules = ScheduleRepository(session)

    decision = await RunLimitGuard(schedules, ContentRepository(session)).check(normalize_schedule(row), utcnow())

    assert not decision.allowed
    assert decision.reason == "reached max outputs limit of 3"
    assert (await schedules.get_by_id(row.id)).status == "paused"


async def test_failed_rows_do_not_count(session, make_schedule, make_content):
    row = await make_schedule(generation_settings={"max_images": 2})
    await make_content(row, status="completed")
    await make_content(row, status="failed", meta={"error_message": "boom"})
    await make_content(row, status="failed", meta={"error_message": "boom"})

    decision = await RunLimitGuard(ScheduleRepository(session), ContentRepository(session)).check(
        normalize_schedule(row), utcnow()
    )

    assert decision.allowed


async def test_other_classification_not_counted(session, make_schedule, make_content):
    row = await make_schedule(generation_settings={"max_images": 1})
    await make_content(row, status="completed", content_type="design")

    decision = await RunLimitGuard(ScheduleRepository(session), ContentRepository(session)).check(
        normalize_schedule(row), utcnow()
    )

    assert decision.allowed


async def test_video_count_is_windowed(session, make_schedule, make_content):
    now = utcnow()
    row = await make_schedule(
        "video-generation",
        schedule_config={"duration_hours": 2},
        generation_settings={"max_videos": 1},
    )
    await make_content(row, status="completed", content_type="video", created_at=now - timedelta(hours=5))
    guard = RunLimitGuard(ScheduleRepository(session), ContentRepository(session))

    assert (await guard.check(normalize_schedule(row), now)).allowed

    await make_content(row, status="completed", content_type="video", created_at=now - timedelta(minutes=10))
    assert not (await guard.check(normalize_schedule(row), now)).allowed


async def test_image_count_is_all_time_by_default(session, make_schedule, make_content):
    now = utcnow()
    row = await make_schedule(schedule_config={"duration_hours": 2}, generation_settings={"max_images": 1})
    await make_content(row, status="completed", created_at=now - timedelta(hours=5))

    decision = await RunLimitGuard(ScheduleRepository(session), ContentRepository(session)).check(
        normalize_schedule(row), now
    )

    assert not decision.allowed
