# content_scheduler/schemas/schedule_schema.py
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
import uuid
from datetime import datetime

from content_scheduler.schemas.schedule_settings import ContentType


class ScheduleCreate(BaseModel):
    user_id: uuid.UUID
    task_id: uuid.UUID
    task_type: ContentType
    name: str
    description: Optional[str] = None
    prompt: str
    schedule_config: dict = Field(default_factory=dict)
    generation_settings: dict = Field(default_factory=dict)
    bucket_settings: dict = Field(default_factory=dict)
    active: bool = True


class ScheduleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    task_id: uuid.UUID
    task_type: str
    name: str
    description: Optional[str]
    prompt: str
    schedule_config: dict
    generation_settings: dict
    bucket_settings: dict
    status: str
    created_at: datetime
    last_run: Optional[datetime]
    next_run: Optional[datetime]


class ContentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    schedule_id: uuid.UUID
    content_type: str
    generation_status: str
    external_job_id: Optional[str]
    content_url: Optional[str]
    storage_path: Optional[str]
    meta: dict
    created_at: datetime


class BucketImageCreate(BaseModel):
    user_id: uuid.UUID
    task_id: uuid.UUID
    task_type: ContentType
    filename: str
    image_url: str
    storage_path: Optional[str] = None


class BucketImageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    task_id: uuid.UUID
    task_type: str
    filename: str
    image_url: str
    created_at: datetime


class ScheduleResult(BaseModel):
    schedule_id: uuid.UUID
    content_type: Optional[str] = None
    outcome: str  # dispatched, paused, skipped, failed
    success: bool
    job_id: Optional[uuid.UUID] = None
    records_created: int = 0
    reason: Optional[str] = None
    error: Optional[str] = None


class DispatchPassResult(BaseModel):
    processed_count: int
    total_considered: int
    per_schedule_results: List[ScheduleResult] = Field(default_factory=list)


class CompletionPassResult(BaseModel):
    completed_count: int
    failed_count: int
    total_checked: int
