# content_scheduler/models/schedule.py
from sqlmodel import SQLModel, Field, Column
from typing import Optional
from datetime import datetime
from enum import Enum
import uuid
from sqlalchemy import DateTime, String, JSON

from content_scheduler.utils import utcnow


class ScheduleStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    STOPPED = "stopped"


class Schedule(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(index=True)
    task_id: uuid.UUID = Field(index=True)
    # content-type discriminator, kept as raw text so unknown values survive a read
    task_type: str = Field(sa_column=Column(String, index=True, nullable=False))
    name: str = Field(default="")
    description: Optional[str] = Field(default=None)
    prompt: str = Field(default="")
    schedule_config: dict = Field(default_factory=dict, sa_column=Column(JSON))
    generation_settings: dict = Field(default_factory=dict, sa_column=Column(JSON))
    bucket_settings: dict = Field(default_factory=dict, sa_column=Column(JSON))
    status: str = Field(default=ScheduleStatus.PAUSED.value, index=True)  # active, paused, stopped
    # timestamps are naive UTC, see utils.utcnow
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
    last_run: Optional[datetime] = Field(default=None, sa_column=Column(DateTime))
    next_run: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, index=True))
    # last dispatch attempt of any outcome; rotates failing schedules behind the rest
    last_attempt_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime))
