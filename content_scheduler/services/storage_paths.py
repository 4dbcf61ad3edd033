# content_scheduler/services/storage_paths.py
"""Deterministic object paths for generated assets.

Layout: ``{owner}/{content-type}/{project}/{kind}_{timestamp}.{ext}``
"""

from typing import Dict, NamedTuple, Optional
from datetime import datetime

from content_scheduler.schemas.schedule_settings import ContentType
from content_scheduler.utils import epoch_millis, utcnow


class AssetKind(NamedTuple):
    prefix: str
    extension: str
    mime_type: str


ASSET_KINDS: Dict[ContentType, AssetKind] = {
    ContentType.IMAGE_GENERATION: AssetKind("generated", "png", "image/png"),
    ContentType.PRINT_ON_SHIRT: AssetKind("design", "png", "image/png"),
    ContentType.JOURNAL: AssetKind("journal", "png", "image/png"),
    ContentType.VIDEO_GENERATION: AssetKind("video", "mp4", "video/mp4"),
}


def asset_kind(task_type) -> AssetKind:
    return ASSET_KINDS[ContentType.parse(task_type)]


def generate_storage_path(user_id, task_id, task_type, timestamp: Optional[datetime] = None) -> str:
    content_type = ContentType.parse(task_type)
    kind = ASSET_KINDS[content_type]
    ts = epoch_millis(timestamp or utcnow())
    return f"{user_id}/{content_type.value}/{task_id}/{kind.prefix}_{ts}.{kind.extension}"
