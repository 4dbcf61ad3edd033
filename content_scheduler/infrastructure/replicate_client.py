# content_scheduler/infrastructure/replicate_client.py
from typing import Any, Dict, Optional

import httpx
import structlog

logger = structlog.get_logger(__name__)


class ReplicateError(Exception):
    pass


class ReplicateClient:
    """Thin async client for Replicate's prediction API."""

    def __init__(
        self,
        api_token: Optional[str],
        base_url: str = "https://api.replicate.com/v1",
        timeout: int = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_token:
            raise ReplicateError("REPLICATE_API_TOKEN is not configured")

        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
            headers={"Authorization": f"Bearer {self.api_token}"},
        )

    async def create_prediction(self, model: str, input: Dict[str, Any]) -> dict:
        """Submit an async prediction for an official model ("owner/name")."""
        async with self._client() as client:
            try:
                response = await client.post(f"/models/{model}/predictions", json={"input": input})
            except httpx.HTTPError as exc:
                raise ReplicateError(f"Replicate request failed: {exc}") from exc

        if response.status_code >= 400:
            raise ReplicateError(f"Replicate API error ({response.status_code}): {response.text}")

        body = response.json()
        if not body.get("id"):
            raise ReplicateError(f"Replicate returned no prediction id: {body}")

        logger.info("replicate_prediction_created", model=model, prediction_id=body["id"])
        return body

    async def get_prediction(self, prediction_id: str) -> dict:
        async with self._client() as client:
            try:
                response = await client.get(f"/predictions/{prediction_id}")
            except httpx.HTTPError as exc:
                raise ReplicateError(f"Replicate request failed: {exc}") from exc

        if response.status_code >= 400:
            raise ReplicateError(f"Replicate API error ({response.status_code}): {response.text}")

        return response.json()
