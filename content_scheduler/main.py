# content_scheduler/main.py
import logging
import os
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from content_scheduler.config import get_settings
from content_scheduler.infrastructure.database import configure_engine, init_db
from content_scheduler.middleware.logging import RequestIdMiddleware
from content_scheduler.routers.bucket_router import router as bucket_router
from content_scheduler.routers.schedule_router import router as schedule_router
from content_scheduler.routers.scheduler_router import router as scheduler_router


def configure_structlog(log_level: str = "INFO"):
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(log_level.upper())),
        context_class=dict,
    )


settings = get_settings()
configure_structlog(settings.log_level)
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = configure_engine(settings)
    await init_db(engine)
    logger.info("app_startup", environment=settings.environment)
    yield
    await engine.dispose()
    logger.info("app_shutdown")


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)

app.include_router(scheduler_router)
app.include_router(schedule_router)
app.include_router(bucket_router)


if __name__ == "__main__":
    uvicorn.run("content_scheduler.main:app", host="0.0.0.0", port=int(os.getenv("PORT", 8000)), reload=True)
