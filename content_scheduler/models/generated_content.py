# content_scheduler/models/generated_content.py
from sqlmodel import SQLModel, Field, Column
from typing import Optional
from datetime import datetime
from enum import Enum
import uuid
from sqlalchemy import DateTime, String, JSON

from content_scheduler.utils import utcnow


class GenerationStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class GeneratedContent(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    schedule_id: uuid.UUID = Field(foreign_key="schedule.id", index=True)
    task_id: uuid.UUID = Field(index=True)
    user_id: uuid.UUID = Field(index=True)
    task_type: str
    content_type: str = Field(sa_column=Column(String, index=True, nullable=False))  # image, design, video, journal
    title: Optional[str] = Field(default=None)
    description: Optional[str] = Field(default=None)
    generation_status: str = Field(default=GenerationStatus.PENDING.value, index=True)
    external_job_id: Optional[str] = Field(default=None, index=True)
    content_url: Optional[str] = Field(default=None)
    storage_path: Optional[str] = Field(default=None)
    # "metadata" is reserved on declarative classes
    meta: dict = Field(default_factory=dict, sa_column=Column("metadata", JSON))
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
