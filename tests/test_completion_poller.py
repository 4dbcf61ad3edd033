"""Tests for the completion pass."""

from datetime import timedelta

from content_scheduler.infrastructure.content_repo import ContentRepository
from content_scheduler.services.completion_poller import CompletionPoller, extract_output_url
from content_scheduler.utils import utcnow

ASSET_URL = "https://assets.test/out/abc.png"


async def _processing(make_schedule, make_content, task_type="image-generation", job="pred-1", **overrides):
    schedule = await make_schedule(task_type)
    content_type = {"print-on-shirt": "design", "video-generation": "video"}.get(task_type, "image")
    record = await make_content(
        schedule,
        status="processing",
        content_type=content_type,
        external_job_id=job,
        meta={"prompt": schedule.prompt},
        **overrides,
    )
    return schedule, record


def test_extract_output_url_shapes():
    assert extract_output_url(ASSET_URL) == ASSET_URL
    assert extract_output_url([ASSET_URL, "https://assets.test/2.png"]) == ASSET_URL
    assert extract_output_url({"url": ASSET_URL}) == ASSET_URL
    assert extract_output_url([]) is None
    assert extract_output_url(None) is None


async def test_succeeded_output_is_stored(
    session, replicate, replicate_stub, storage, storage_stub, settings, make_schedule, make_content
):
    schedule, record = await _processing(make_schedule, make_content)
    replicate_stub.finish("pred-1", output=[ASSET_URL])

    result = await CompletionPoller(session, replicate, storage, settings).run_pass()

    assert (result.completed_count, result.failed_count, result.total_checked) == (1, 0, 1)
    stored = await ContentRepository(session).get_by_id(record.id)
    assert stored.generation_status == "completed"
    assert stored.storage_path.startswith(f"{schedule.user_id}/image-generation/{schedule.task_id}/generated_")
    assert stored.storage_path.endswith(".png")
    assert stored.content_url == f"https://storage.test/storage/v1/object/public/generated-images/{stored.storage_path}"
    assert stored.meta["provider_output_url"] == ASSET_URL
    assert stored.meta["prompt"] == schedule.prompt

    upload = storage_stub.uploads[f"generated-images/{stored.storage_path}"]
    assert upload["content"] == b"asset-bytes"
    assert upload["content_type"] == "image/png"


async def test_video_output_is_stored_as_mp4(
    session, replicate, replicate_stub, storage, storage_stub, settings, make_schedule, make_content
):
    _, record = await _processing(make_schedule, make_content, task_type="video-generation")
    replicate_stub.finish("pred-1", output="https://assets.test/out/clip.mp4")

    await CompletionPoller(session, replicate, storage, settings).run_pass()

    stored = await ContentRepository(session).get_by_id(record.id)
    assert "/video-generation/" in stored.storage_path
    assert stored.storage_path.endswith(".mp4")
    assert list(storage_stub.uploads.values())[0]["content_type"] == "video/mp4"


async def test_download_failure_marks_failed(
    session, replicate, replicate_stub, storage, storage_stub, settings, make_schedule, make_content
):
    _, record = await _processing(make_schedule, make_content)
    replicate_stub.finish("pred-1", output=ASSET_URL)
    storage_stub.fail_download = True

    result = await CompletionPoller(session, replicate, storage, settings).run_pass()

    assert result.failed_count == 1
    stored = await ContentRepository(session).get_by_id(record.id)
    assert stored.generation_status == "failed"
    assert stored.meta["error_message"].startswith("Download/storage failed:")
    assert stored.content_url is None


async def test_upload_failure_marks_failed(
    session, replicate, replicate_stub, storage, storage_stub, settings, make_schedule, make_content
):
    _, record = await _processing(make_schedule, make_content)
    replicate_stub.finish("pred-1", output=ASSET_URL)
    storage_stub.fail_upload = True

    await CompletionPoller(session, replicate, storage, settings).run_pass()

    stored = await ContentRepository(session).get_by_id(record.id)
    assert stored.generation_status == "failed"
    assert "upload failed" in stored.meta["error_message"]


async def test_missing_output_marks_failed(
    session, replicate, replicate_stub, storage, settings, make_schedule, make_content
):
    _, record = await _processing(make_schedule, make_content)
    replicate_stub.finish("pred-1", output=None)

    await CompletionPoller(session, replicate, storage, settings).run_pass()

    stored = await ContentRepository(session).get_by_id(record.id)
    assert stored.generation_status == "failed"
    assert stored.meta["error_message"] == "No output URL from provider"


async def test_provider_failure_copies_error(
    session, replicate, replicate_stub, storage, settings, make_schedule, make_content
):
    _, record = await _processing(make_schedule, make_content)
    replicate_stub.finish("pred-1", status="failed", error="NSFW content detected")

    result = await CompletionPoller(session, replicate, storage, settings).run_pass()

    assert result.failed_count == 1
    stored = await ContentRepository(session).get_by_id(record.id)
    assert stored.generation_status == "failed"
    assert stored.meta["error_message"] == "NSFW content detected"


async def test_canceled_without_error_gets_default_message(
    session, replicate, replicate_stub, storage, settings, make_schedule, make_content
):
    _, record = await _processing(make_schedule, make_content)
    replicate_stub.finish("pred-1", status="canceled")

    await CompletionPoller(session, replicate, storage, settings).run_pass()

    stored = await ContentRepository(session).get_by_id(record.id)
    assert stored.meta["error_message"] == "Generation failed"


async def test_in_progress_is_left_untouched(
    session, replicate, replicate_stub, storage, settings, make_schedule, make_content
):
    _, record = await _processing(make_schedule, make_content)
    replicate_stub.finish("pred-1", status="processing")

    result = await CompletionPoller(session, replicate, storage, settings).run_pass()

    assert (result.completed_count, result.failed_count, result.total_checked) == (0, 0, 1)
    assert (await ContentRepository(session).get_by_id(record.id)).generation_status == "processing"


async def test_status_request_failure_is_retried_later(
    session, replicate, replicate_stub, storage, settings, make_schedule, make_content
):
    _, record = await _processing(make_schedule, make_content)
    replicate_stub.status_error = True

    result = await CompletionPoller(session, replicate, storage, settings).run_pass()

    assert result.failed_count == 0
    assert (await ContentRepository(session).get_by_id(record.id)).generation_status == "processing"


async def test_stuck_row_times_out_when_configured(
    session, replicate, replicate_stub, storage, settings, make_schedule, make_content
):
    settings.processing_timeout_hours = 2
    _, record = await _processing(make_schedule, make_content, created_at=utcnow() - timedelta(hours=3))
    replicate_stub.finish("pred-1", status="starting")

    result = await CompletionPoller(session, replicate, storage, settings).run_pass()

    assert result.failed_count == 1
    stored = await ContentRepository(session).get_by_id(record.id)
    assert stored.meta["error_message"].startswith("Timed out after 2 hours")


async def test_second_pass_leaves_resolved_rows_alone(
    session, replicate, replicate_stub, storage, storage_stub, settings, make_schedule, make_content
):
    _, done = await _processing(make_schedule, make_content, job="pred-1")
    _, broken = await _processing(make_schedule, make_content, job="pred-2")
    replicate_stub.finish("pred-1", output=ASSET_URL)
    replicate_stub.finish("pred-2", status="failed", error="boom")
    poller = CompletionPoller(session, replicate, storage, settings)

    await poller.run_pass()
    content = ContentRepository(session)
    first = {r.id: (r.generation_status, r.content_url, dict(r.meta)) for r in [await content.get_by_id(done.id), await content.get_by_id(broken.id)]}

    second = await poller.run_pass()

    assert second.total_checked == 0
    after = {r.id: (r.generation_status, r.content_url, dict(r.meta)) for r in [await content.get_by_id(done.id), await content.get_by_id(broken.id)]}
    assert after == first
    assert len(storage_stub.uploads) == 1


async def test_terminal_update_only_applies_to_processing_rows(session, make_schedule, make_content):
    schedule = await make_schedule()
    record = await make_content(schedule, status="completed", content_url="https://cdn.test/a.png")
    content = ContentRepository(session)

    assert await content.mark_failed(record.id, {}, "late failure") is False
    assert (await content.get_by_id(record.id)).generation_status == "completed"


async def test_paths_stay_unique_within_a_pass(
    session, replicate, replicate_stub, storage, storage_stub, settings, make_schedule, make_content
):
    schedule = await make_schedule()
    for job in ("pred-a", "pred-b", "pred-c"):
        await make_content(schedule, status="processing", external_job_id=job)
        replicate_stub.finish(job, output=ASSET_URL)

    result = await CompletionPoller(session, replicate, storage, settings).run_pass()

    assert result.completed_count == 3
    assert len(storage_stub.uploads) == 3
