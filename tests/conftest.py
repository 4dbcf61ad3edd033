"""Shared fixtures: in-memory database, provider and storage fakes."""

import json
import uuid
from datetime import timedelta

import httpx
import pytest
from sqlalchemy.pool import StaticPool

from content_scheduler.config import Settings
from content_scheduler.infrastructure.database import build_engine, get_session, init_db
from content_scheduler.infrastructure.replicate_client import ReplicateClient
from content_scheduler.infrastructure.storage_client import StorageClient
from content_scheduler.models.bucket_image import BucketImage
from content_scheduler.models.generated_content import GeneratedContent
from content_scheduler.models.schedule import Schedule
from content_scheduler.utils import utcnow

REPLICATE_BASE = "https://replicate.test/v1"
STORAGE_BASE = "https://storage.test"
ASSET_HOST = "https://assets.test"


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite://",
        replicate_api_token="r8_test",
        replicate_base_url=REPLICATE_BASE,
        storage_url=STORAGE_BASE,
        storage_service_key="service-key",
    )


@pytest.fixture
async def engine():
    engine = build_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    async with get_session(engine) as session:
        yield session


class ReplicateStub:
    """Stands in for the Replicate prediction API behind an httpx.MockTransport."""

    def __init__(self):
        self.created = []
        self.predictions = {}
        self.reject = lambda model, input: False
        self.status_error = False
        self._seq = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.method == "POST" and path.endswith("/predictions"):
            model = path[len("/v1/models/"):-len("/predictions")]
            body = json.loads(request.content)
            if self.reject(model, body["input"]):
                return httpx.Response(422, json={"detail": "input rejected"})
            self._seq += 1
            prediction_id = f"pred-{self._seq}"
            self.created.append((model, body["input"]))
            self.predictions[prediction_id] = {"id": prediction_id, "status": "starting"}
            return httpx.Response(201, json={"id": prediction_id, "status": "starting"})

        if request.method == "GET" and path.startswith("/v1/predictions/"):
            if self.status_error:
                return httpx.Response(503, text="unavailable")
            prediction = self.predictions.get(path.rsplit("/", 1)[-1])
            if prediction is None:
                return httpx.Response(404, json={"detail": "not found"})
            return httpx.Response(200, json=prediction)

        return httpx.Response(404)

    def finish(self, prediction_id, status="succeeded", output=None, error=None):
        self.predictions[prediction_id] = {
            "id": prediction_id,
            "status": status,
            "output": output,
            "error": error,
        }


class StorageStub:
    """Serves provider assets and accepts uploads to the storage REST API."""

    def __init__(self):
        self.uploads = {}
        self.fail_download = False
        self.fail_upload = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if request.method == "GET" and url.startswith(ASSET_HOST):
            if self.fail_download:
                return httpx.Response(404, text="gone")
            return httpx.Response(200, content=b"asset-bytes")

        prefix = f"{STORAGE_BASE}/storage/v1/object/"
        if request.method == "POST" and url.startswith(prefix):
            if self.fail_upload:
                return httpx.Response(500, text="storage down")
            self.uploads[url[len(prefix):]] = {
                "content": request.content,
                "content_type": request.headers.get("content-type"),
                "authorization": request.headers.get("authorization"),
            }
            return httpx.Response(200, json={"Key": url[len(prefix):]})

        return httpx.Response(404)


class FakeRedis:
    def __init__(self):
        self.store = {}

    async def set(self, key, value, nx=False, ex=None):
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    async def get(self, key):
        return self.store.get(key)

    async def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0


@pytest.fixture
def replicate_stub():
    return ReplicateStub()


@pytest.fixture
def storage_stub():
    return StorageStub()


@pytest.fixture
def replicate(replicate_stub):
    return ReplicateClient("r8_test", base_url=REPLICATE_BASE, transport=httpx.MockTransport(replicate_stub.handler))


@pytest.fixture
def storage(storage_stub):
    return StorageClient(STORAGE_BASE, "service-key", transport=httpx.MockTransport(storage_stub.handler))


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def make_schedule(session):
    async def _make(task_type="image-generation", **overrides):
        now = utcnow()
        values = dict(
            user_id=uuid.uuid4(),
            task_id=uuid.uuid4(),
            task_type=task_type,
            name="nightly batch",
            prompt="a lighthouse at dusk, oil painting",
            schedule_config={"duration_hours": 24, "interval_minutes": 60},
            generation_settings={"max_images": 10},
            bucket_settings={},
            status="active",
            created_at=now - timedelta(hours=1),
            next_run=now - timedelta(minutes=1),
        )
        values.update(overrides)
        schedule = Schedule(**values)
        session.add(schedule)
        await session.commit()
        await session.refresh(schedule)
        return schedule

    return _make


@pytest.fixture
def make_content(session):
    async def _make(schedule, status="processing", content_type=None, **overrides):
        values = dict(
            schedule_id=schedule.id,
            task_id=schedule.task_id,
            user_id=schedule.user_id,
            task_type=schedule.task_type,
            content_type=content_type or "image",
            generation_status=status,
            meta={},
        )
        values.update(overrides)
        record = GeneratedContent(**values)
        session.add(record)
        await session.commit()
        await session.refresh(record)
        return record

    return _make


@pytest.fixture
def make_bucket_image(session):
    async def _make(schedule, filename="ref.png", task_type=None):
        image = BucketImage(
            user_id=schedule.user_id,
            task_id=schedule.task_id,
            task_type=task_type or schedule.task_type,
            filename=filename,
            image_url=f"{ASSET_HOST}/bucket/{filename}",
        )
        session.add(image)
        await session.commit()
        await session.refresh(image)
        return image

    return _make
