# content_scheduler/services/generation.py
"""Generation routines: turn a schedule into provider predictions.

Every routine submits asynchronous predictions and writes one
GeneratedContent row per submission. Rows start as ``processing`` with the
prediction id attached; the completion poller finalizes them later. A
submission the provider rejects is written as a ``failed`` row instead.
"""

import asyncio
import itertools
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List

import structlog

from content_scheduler.config import Settings
from content_scheduler.errors import ScheduleConfigError
from content_scheduler.infrastructure.bucket_repo import BucketImageRepository
from content_scheduler.infrastructure.content_repo import ContentRepository
from content_scheduler.infrastructure.replicate_client import ReplicateClient, ReplicateError
from content_scheduler.models.generated_content import GeneratedContent, GenerationStatus
from content_scheduler.schemas.schedule_settings import ContentType, NormalizedSchedule
from content_scheduler.utils import utcnow

logger = structlog.get_logger(__name__)


@dataclass
class Submission:
    input: Dict[str, Any]
    title: str
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RoutineResult:
    records: List[GeneratedContent] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def submitted(self) -> int:
        return sum(1 for r in self.records if r.generation_status == GenerationStatus.PROCESSING.value)

    @property
    def ok(self) -> bool:
        return not self.errors


class GenerationRoutines:
    def __init__(
        self,
        replicate: ReplicateClient,
        content: ContentRepository,
        bucket_images: BucketImageRepository,
        settings: Settings,
    ):
        self.replicate = replicate
        self.content = content
        self.bucket_images = bucket_images
        self.settings = settings

    async def generate_image(self, schedule: NormalizedSchedule, job_id: uuid.UUID) -> RoutineResult:
        gen = schedule.generation
        base_input: Dict[str, Any] = {
            "prompt": _require_prompt(schedule),
            "aspect_ratio": gen.aspect_ratio,
            "output_format": "png",
            "safety_tolerance": 2,
            "prompt_upsampling": gen.prompt_upsampling,
        }
        if gen.seed:
            base_input["seed"] = gen.seed

        if schedule.bucket.use_bucket_images:
            images = await self.bucket_images.list_for_task(
                schedule.task_id,
                user_id=schedule.user_id,
                task_type=ContentType.IMAGE_GENERATION.value,
            )
            if not images:
                raise ScheduleConfigError("no bucket images found for batch generation; upload images to the bucket first")
            submissions = [
                Submission(
                    input={**base_input, "input_image": img.image_url},
                    title=f"Generated from {img.filename}",
                    meta={
                        "reference_image_url": img.image_url,
                        "reference_image_filename": img.filename,
                        "bucket_generation": True,
                    },
                )
                for img in images
            ]
        else:
            single_input = dict(base_input)
            if gen.reference_image_url:
                single_input["input_image"] = gen.reference_image_url
            submissions = [
                Submission(
                    input=single_input,
                    title="AI Generated Image",
                    meta={"reference_image_url": gen.reference_image_url},
                )
            ]

        return await self._submit_all(schedule, job_id, self.settings.image_model, submissions)

    async def generate_print_on_shirt(self, schedule: NormalizedSchedule, job_id: uuid.UUID) -> RoutineResult:
        gen = schedule.generation
        prompt = _require_prompt(schedule)

        def pair_input(url_1: str, url_2: str) -> Dict[str, Any]:
            return {
                "prompt": prompt,
                "input_image_1": url_1,
                "input_image_2": url_2,
                "aspect_ratio": gen.aspect_ratio,
                "output_format": "png",
                "safety_tolerance": 1,
            }

        if schedule.bucket.use_bucket_images:
            ids_1 = schedule.bucket.bucket_image_1_ids
            ids_2 = schedule.bucket.bucket_image_2_ids
            if not ids_1 or not ids_2:
                raise ScheduleConfigError("print-on-shirt bucket mode needs a selection in both image sets")
            set_1 = await self.bucket_images.get_many(ids_1)
            set_2 = await self.bucket_images.get_many(ids_2)
            if len(set_1) != len(set(ids_1)) or len(set_2) != len(set(ids_2)):
                raise ScheduleConfigError("selected bucket images no longer exist")

            submissions = [
                Submission(
                    input=pair_input(img_1.image_url, img_2.image_url),
                    title=f"Design: {img_1.filename} + {img_2.filename}",
                    meta={
                        "combination": f"{img_1.id}:{img_2.id}",
                        "combination_index": index,
                        "input_image_1_url": img_1.image_url,
                        "input_image_2_url": img_2.image_url,
                        "bucket_generation": True,
                    },
                )
                for index, (img_1, img_2) in enumerate(itertools.product(set_1, set_2))
            ]
            logger.info(
                "print_on_shirt_fanout",
                schedule_id=str(schedule.id),
                set_1=len(set_1),
                set_2=len(set_2),
                combinations=len(submissions),
            )
        else:
            if not gen.input_image_1_url or not gen.input_image_2_url:
                raise ScheduleConfigError("print-on-shirt schedule needs input_image_1_url and input_image_2_url")
            submissions = [
                Submission(
                    input=pair_input(gen.input_image_1_url, gen.input_image_2_url),
                    title=f"Design: {prompt[:50]}",
                    meta={
                        "input_image_1_url": gen.input_image_1_url,
                        "input_image_2_url": gen.input_image_2_url,
                    },
                )
            ]

        return await self._submit_all(schedule, job_id, self.settings.print_on_shirt_model, submissions)

    async def generate_video(self, schedule: NormalizedSchedule, job_id: uuid.UUID) -> RoutineResult:
        gen = schedule.generation
        prompt = _require_prompt(schedule)
        if not gen.start_image_url:
            raise ScheduleConfigError("video schedule needs a start image")

        submission = Submission(
            input={
                "prompt": prompt,
                "negative_prompt": gen.negative_prompt,
                "start_image": gen.start_image_url,
                "mode": gen.video_mode,
                "duration": gen.video_duration,
            },
            title=f"Video: {prompt[:50]}...",
            meta={
                "negative_prompt": gen.negative_prompt,
                "start_image": gen.start_image_url,
                "mode": gen.video_mode,
                "duration": gen.video_duration,
            },
        )
        return await self._submit_all(schedule, job_id, self.settings.video_model, [submission])

    async def _submit_all(
        self,
        schedule: NormalizedSchedule,
        job_id: uuid.UUID,
        model: str,
        submissions: List[Submission],
    ) -> RoutineResult:
        semaphore = asyncio.Semaphore(max(1, self.settings.fanout_concurrency))

        async def submit(sub: Submission) -> dict:
            async with semaphore:
                return await self.replicate.create_prediction(model, sub.input)

        outcomes = await asyncio.gather(*(submit(s) for s in submissions), return_exceptions=True)

        result = RoutineResult()
        for sub, outcome in zip(submissions, outcomes):
            meta = {
                **sub.meta,
                "prompt": schedule.prompt,
                "model": model,
                "job_id": str(job_id),
                "aspect_ratio": schedule.generation.aspect_ratio,
                "submitted_at": utcnow().isoformat(),
            }
            record = GeneratedContent(
                schedule_id=schedule.id,
                task_id=schedule.task_id,
                user_id=schedule.user_id,
                task_type=schedule.content_type.value,
                content_type=schedule.classification,
                title=sub.title,
                description=schedule.prompt,
            )
            if isinstance(outcome, ReplicateError):
                record.generation_status = GenerationStatus.FAILED.value
                record.meta = {**meta, "error_message": str(outcome)}
                result.errors.append(str(outcome))
                logger.warning("prediction_submit_failed", schedule_id=str(schedule.id), error=str(outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                record.generation_status = GenerationStatus.PROCESSING.value
                record.external_job_id = outcome["id"]
                record.meta = {**meta, "prediction_id": outcome["id"]}
            result.records.append(record)

        await self.content.add_many(result.records)
        return result


def _require_prompt(schedule: NormalizedSchedule) -> str:
    if not schedule.prompt.strip():
        raise ScheduleConfigError("schedule has no prompt")
    return schedule.prompt
