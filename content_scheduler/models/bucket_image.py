# content_scheduler/models/bucket_image.py
from sqlmodel import SQLModel, Field, Column
from sqlalchemy import DateTime
from typing import Optional
from datetime import datetime
import uuid

from content_scheduler.utils import utcnow


class BucketImage(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(index=True)
    task_id: uuid.UUID = Field(index=True)
    task_type: str = Field(index=True)
    filename: str
    storage_path: Optional[str] = Field(default=None)  # object storage path
    image_url: str
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
