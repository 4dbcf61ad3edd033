# content_scheduler/infrastructure/database.py
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from content_scheduler.config import Settings

# table registration for metadata.create_all
from content_scheduler.models.schedule import Schedule  # noqa: F401
from content_scheduler.models.generated_content import GeneratedContent  # noqa: F401
from content_scheduler.models.generation_job import GenerationJob  # noqa: F401
from content_scheduler.models.bucket_image import BucketImage  # noqa: F401

logger = structlog.get_logger(__name__)

_engine: Optional[AsyncEngine] = None


def build_engine(database_url: str, **kwargs) -> AsyncEngine:
    return create_async_engine(database_url, echo=False, **kwargs)


def configure_engine(settings: Settings) -> AsyncEngine:
    global _engine
    _engine = build_engine(settings.database_url)
    return _engine


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError("database engine is not configured; call configure_engine() first")
    return _engine


async def init_db(engine: Optional[AsyncEngine] = None) -> None:
    engine = engine or get_engine()
    async with engine.begin() as connection:
        await connection.run_sync(SQLModel.metadata.create_all)
    logger.info("db_tables_ready")


@asynccontextmanager
async def get_session(engine: Optional[AsyncEngine] = None) -> AsyncIterator[AsyncSession]:
    async with AsyncSession(engine or get_engine(), expire_on_commit=False) as session:
        yield session
