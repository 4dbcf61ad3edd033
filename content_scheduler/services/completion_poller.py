# content_scheduler/services/completion_poller.py
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, List, Optional
import uuid

import structlog
from sqlmodel.ext.asyncio.session import AsyncSession

from content_scheduler.config import Settings
from content_scheduler.infrastructure.content_repo import ContentRepository
from content_scheduler.infrastructure.replicate_client import ReplicateClient, ReplicateError
from content_scheduler.infrastructure.storage_client import StorageClient, StorageError
from content_scheduler.models.generated_content import GeneratedContent
from content_scheduler.schemas.schedule_schema import CompletionPassResult
from content_scheduler.services.storage_paths import asset_kind, generate_storage_path
from content_scheduler.utils import utcnow

logger = structlog.get_logger(__name__)

COMPLETED = "completed"
FAILED = "failed"

PROVIDER_SUCCEEDED = "succeeded"
PROVIDER_FAILED = ("failed", "canceled")


@dataclass(frozen=True)
class PendingRecord:
    id: uuid.UUID
    user_id: uuid.UUID
    task_id: uuid.UUID
    task_type: str
    external_job_id: str
    meta: dict
    created_at: datetime

    @classmethod
    def from_row(cls, row: GeneratedContent) -> "PendingRecord":
        return cls(
            id=row.id,
            user_id=row.user_id,
            task_id=row.task_id,
            task_type=row.task_type,
            external_job_id=row.external_job_id,
            meta=dict(row.meta or {}),
            created_at=row.created_at,
        )


def extract_output_url(output: Any) -> Optional[str]:
    """Providers return a URL, a list of URLs, or an object with a url field."""
    if isinstance(output, list):
        output = output[0] if output else None
    if isinstance(output, dict):
        output = output.get("url")
    if isinstance(output, str) and output:
        return output
    return None


def provider_error(prediction: dict) -> Optional[str]:
    error = prediction.get("error")
    if isinstance(error, dict):
        error = error.get("message")
    return str(error) if error else None


class CompletionPoller:
    """
    Reconciles in-flight content rows with the provider's job status.

    Rows are handled one at a time; whatever goes wrong with one row ends in a
    "failed" update for that row and never stops the rest of the batch.
    """

    def __init__(
        self,
        session: AsyncSession,
        replicate: ReplicateClient,
        storage: StorageClient,
        settings: Settings,
    ):
        self.session = session
        self.replicate = replicate
        self.storage = storage
        self.settings = settings
        self.content = ContentRepository(session)
        self._last_ts: Optional[datetime] = None

    async def run_pass(self, now: Optional[datetime] = None) -> CompletionPassResult:
        now = now or utcnow()
        rows = await self.content.list_processing(self.settings.completion_batch_size)
        pending: List[PendingRecord] = [PendingRecord.from_row(r) for r in rows]

        completed = failed = 0
        for record in pending:
            try:
                outcome = await self.process_record(record, now)
            except Exception as exc:
                await self.session.rollback()
                logger.exception("content_processing_error", content_id=str(record.id), error=str(exc))
                outcome = await self._fail_quietly(record, f"Processing error: {exc}")

            if outcome == COMPLETED:
                completed += 1
            elif outcome == FAILED:
                failed += 1

        logger.info("completion_pass_finished", completed=completed, failed=failed, checked=len(pending))
        return CompletionPassResult(completed_count=completed, failed_count=failed, total_checked=len(pending))

    async def process_record(self, record: PendingRecord, now: datetime) -> Optional[str]:
        try:
            prediction = await self.replicate.get_prediction(record.external_job_id)
        except ReplicateError as exc:
            # status endpoint unavailable: leave the row for the next pass
            logger.warning("prediction_status_unavailable", content_id=str(record.id), error=str(exc))
            return None

        status = prediction.get("status")
        if status == PROVIDER_SUCCEEDED:
            return await self._finalize(record, prediction)

        if status in PROVIDER_FAILED:
            error = provider_error(prediction) or "Generation failed"
            logger.info("prediction_failed", content_id=str(record.id), prediction_id=record.external_job_id, error=error)
            return await self._fail(record, error)

        timeout = self.settings.processing_timeout_hours
        if timeout and now - record.created_at >= timedelta(hours=timeout):
            return await self._fail(record, f"Timed out after {timeout:g} hours waiting for the provider (last status: {status})")

        logger.debug("prediction_pending", content_id=str(record.id), prediction_id=record.external_job_id, status=status)
        return None

    async def _finalize(self, record: PendingRecord, prediction: dict) -> Optional[str]:
        output_url = extract_output_url(prediction.get("output"))
        if not output_url:
            return await self._fail(record, "No output URL from provider")

        kind = asset_kind(record.task_type)
        try:
            data = await self.storage.download(output_url)
            path = generate_storage_path(record.user_id, record.task_id, record.task_type, timestamp=self._next_timestamp())
            await self.storage.upload(path, data, kind.mime_type)
        except StorageError as exc:
            logger.warning("content_storage_failed", content_id=str(record.id), error=str(exc))
            return await self._fail(record, f"Download/storage failed: {exc}")

        meta = {
            **record.meta,
            "provider_output_url": output_url,
            "prediction_id": record.external_job_id,
            "predict_time_seconds": (prediction.get("metrics") or {}).get("predict_time"),
        }
        if not await self.content.mark_completed(record.id, self.storage.public_url(path), path, meta):
            return None
        logger.info("content_completed", content_id=str(record.id), storage_path=path)
        return COMPLETED

    async def _fail(self, record: PendingRecord, error_message: str) -> Optional[str]:
        if not await self.content.mark_failed(record.id, record.meta, error_message):
            return None
        return FAILED

    async def _fail_quietly(self, record: PendingRecord, error_message: str) -> Optional[str]:
        try:
            return await self._fail(record, error_message)
        except Exception as exc:
            logger.exception("content_fail_update_error", content_id=str(record.id), error=str(exc))
            return None

    def _next_timestamp(self) -> datetime:
        # keep object paths unique when several assets land within the same millisecond
        ts = utcnow()
        if self._last_ts is not None and ts <= self._last_ts:
            ts = self._last_ts + timedelta(milliseconds=1)
        self._last_ts = ts
        return ts
