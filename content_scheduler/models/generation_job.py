# content_scheduler/models/generation_job.py
from sqlmodel import SQLModel, Field, Column
from typing import Optional
from datetime import datetime
from enum import Enum
import uuid
from sqlalchemy import DateTime, JSON

from content_scheduler.utils import utcnow


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class GenerationJob(SQLModel, table=True):
    """One dispatch attempt of a schedule."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    schedule_id: uuid.UUID = Field(foreign_key="schedule.id", index=True)
    user_id: uuid.UUID = Field(index=True)
    status: str = Field(default=JobStatus.QUEUED.value)
    error_message: Optional[str] = Field(default=None)
    output_data: dict = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
    started_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime))
    completed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime))
