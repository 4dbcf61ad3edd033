# content_scheduler/infrastructure/storage_client.py
from typing import Optional

import httpx
import structlog

logger = structlog.get_logger(__name__)


class StorageError(Exception):
    pass


class StorageClient:
    """
    Object storage over the Supabase Storage REST API.
    Also downloads provider output assets, which live behind plain URLs.
    """

    def __init__(
        self,
        base_url: Optional[str],
        service_key: Optional[str],
        bucket: str = "generated-images",
        timeout: int = 120,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not base_url:
            raise StorageError("STORAGE_URL is not configured")
        if not service_key:
            raise StorageError("STORAGE_SERVICE_KEY is not configured")

        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self.timeout = timeout
        self.transport = transport

    async def download(self, url: str) -> bytes:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport, follow_redirects=True) as client:
            try:
                response = await client.get(url)
            except httpx.HTTPError as exc:
                raise StorageError(f"download failed: {exc}") from exc

        if response.status_code >= 400:
            raise StorageError(f"download failed ({response.status_code}): {response.reason_phrase}")
        return response.content

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        headers = {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
            "Content-Type": content_type,
            "x-upsert": "false",
        }
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{path}"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(url, content=data, headers=headers)
            except httpx.HTTPError as exc:
                raise StorageError(f"upload failed: {exc}") from exc

        if response.status_code >= 400:
            raise StorageError(f"upload failed ({response.status_code}): {response.text}")

        logger.info("storage_object_uploaded", bucket=self.bucket, path=path, size=len(data))
        return path

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"
