# content_scheduler/schemas/schedule_settings.py
"""Normalized view of a stored schedule.

Schedules written by different generations of the UI use different keys for
the same setting (``max_images`` vs ``max_images_to_generate``,
``interval_minutes`` vs ``generation_interval_minutes`` ...). Every alias is
resolved here, once, when a row leaves the store; services only ever see
:class:`NormalizedSchedule`.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Sequence
import uuid

from pydantic import BaseModel, Field

from content_scheduler.errors import UnknownContentTypeError
from content_scheduler.models.schedule import Schedule


class ContentType(str, Enum):
    IMAGE_GENERATION = "image-generation"
    PRINT_ON_SHIRT = "print-on-shirt"
    VIDEO_GENERATION = "video-generation"
    JOURNAL = "journal"

    @classmethod
    def parse(cls, value: Any) -> "ContentType":
        try:
            return cls(value)
        except ValueError:
            raise UnknownContentTypeError(value)


# output classification stored on GeneratedContent.content_type
CONTENT_CLASSIFICATION: Dict[ContentType, str] = {
    ContentType.IMAGE_GENERATION: "image",
    ContentType.PRINT_ON_SHIRT: "design",
    ContentType.VIDEO_GENERATION: "video",
    ContentType.JOURNAL: "journal",
}

DEFAULT_MAX_OUTPUTS = 10
DEFAULT_DURATION_HOURS = 24.0
DEFAULT_INTERVAL_MINUTES = 60.0

MAX_OUTPUT_ALIASES: Dict[ContentType, Sequence[str]] = {
    ContentType.IMAGE_GENERATION: ("max_images_to_generate", "max_images"),
    ContentType.PRINT_ON_SHIRT: ("max_images_to_generate", "max_images"),
    ContentType.VIDEO_GENERATION: ("max_videos_to_generate", "max_videos", "max_images"),
    ContentType.JOURNAL: ("max_images_to_generate", "max_images"),
}
DURATION_ALIASES = ("duration_hours", "schedule_duration_hours")
INTERVAL_ALIASES = ("interval_minutes", "generation_interval_minutes")


def first_present(raw: Optional[dict], keys: Sequence[str], default: Any = None) -> Any:
    """Return the first truthy value among ``keys``, else ``default``.

    Falsy values (None, 0, "") fall through, like the ``a || b || default``
    chains the stored data was written against.
    """
    if not raw:
        return default
    for key in keys:
        value = raw.get(key)
        if value:
            return value
    return default


class ScheduleConfig(BaseModel):
    enabled: bool = True
    duration_hours: float = DEFAULT_DURATION_HOURS
    interval_minutes: float = DEFAULT_INTERVAL_MINUTES


class GenerationSettings(BaseModel):
    max_outputs: int = DEFAULT_MAX_OUTPUTS
    aspect_ratio: str = "1:1"
    seed: Optional[int] = None
    prompt_upsampling: bool = True
    reference_image_url: Optional[str] = None
    input_image_1_url: Optional[str] = None
    input_image_2_url: Optional[str] = None
    start_image_url: Optional[str] = None
    negative_prompt: str = ""
    video_mode: Literal["standard", "pro"] = "standard"
    video_duration: Literal[5, 10] = 5


class BucketSettings(BaseModel):
    use_bucket_images: bool = False
    bucket_image_1_ids: List[uuid.UUID] = Field(default_factory=list)
    bucket_image_2_ids: List[uuid.UUID] = Field(default_factory=list)


class NormalizedSchedule(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    task_id: uuid.UUID
    content_type: ContentType
    name: str = ""
    prompt: str = ""
    status: str
    config: ScheduleConfig
    generation: GenerationSettings
    bucket: BucketSettings
    created_at: datetime
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None

    @property
    def classification(self) -> str:
        return CONTENT_CLASSIFICATION[self.content_type]


def normalize_schedule_config(raw: Optional[dict]) -> ScheduleConfig:
    raw = raw or {}
    enabled = raw.get("enabled")
    return ScheduleConfig(
        enabled=True if enabled is None else bool(enabled),
        duration_hours=float(first_present(raw, DURATION_ALIASES, DEFAULT_DURATION_HOURS)),
        interval_minutes=float(first_present(raw, INTERVAL_ALIASES, DEFAULT_INTERVAL_MINUTES)),
    )


def normalize_generation_settings(content_type: ContentType, raw: Optional[dict]) -> GenerationSettings:
    raw = raw or {}
    prompt_upsampling = raw.get("prompt_upsampling")
    return GenerationSettings(
        max_outputs=int(first_present(raw, MAX_OUTPUT_ALIASES[content_type], DEFAULT_MAX_OUTPUTS)),
        aspect_ratio=raw.get("aspect_ratio") or "1:1",
        seed=raw.get("seed") or None,
        prompt_upsampling=True if prompt_upsampling is None else bool(prompt_upsampling),
        reference_image_url=raw.get("reference_image_url") or None,
        input_image_1_url=raw.get("input_image_1_url") or None,
        input_image_2_url=raw.get("input_image_2_url") or None,
        start_image_url=first_present(raw, ("start_image_url", "start_image")),
        negative_prompt=raw.get("negative_prompt") or "",
        video_mode=first_present(raw, ("video_mode", "mode"), "standard"),
        video_duration=int(first_present(raw, ("video_duration", "duration"), 5)),
    )


def normalize_bucket_settings(raw: Optional[dict]) -> BucketSettings:
    raw = raw or {}
    return BucketSettings(
        use_bucket_images=bool(raw.get("use_bucket_images", False)),
        bucket_image_1_ids=raw.get("bucket_image_1_ids") or [],
        bucket_image_2_ids=raw.get("bucket_image_2_ids") or [],
    )


def normalize_schedule(row: Schedule) -> NormalizedSchedule:
    """Build the normalized view of a stored row.

    Raises :class:`UnknownContentTypeError` for a discriminator outside the
    closed set, and pydantic ``ValidationError`` for settings that cannot be
    coerced (e.g. ``mode: "ultra"``).
    """
    content_type = ContentType.parse(row.task_type)
    return NormalizedSchedule(
        id=row.id,
        user_id=row.user_id,
        task_id=row.task_id,
        content_type=content_type,
        name=row.name or "",
        prompt=row.prompt or "",
        status=row.status,
        config=normalize_schedule_config(row.schedule_config),
        generation=normalize_generation_settings(content_type, row.generation_settings),
        bucket=normalize_bucket_settings(row.bucket_settings),
        created_at=row.created_at,
        last_run=row.last_run,
        next_run=row.next_run,
    )
