"""
Upstream generation API client.

Bearer-token authenticated JSON client for the paid image, video and text
capabilities. Each capability has a job-creation endpoint and a status
endpoint keyed by the upstream task id.
"""

import time
from typing import Any

import httpx
from structlog import get_logger

from app.exceptions import (
    MissingExternalJobIdError,
    UnsupportedGenerationTypeError,
    UpstreamConfigurationError,
    UpstreamProviderError,
)
from app.models.api import GenerationType
from app.observability.metrics import metrics

logger = get_logger(__name__)


CREATE_PATHS: dict[GenerationType, str] = {
    GenerationType.IMAGE: "/api/v1/gpt4o-image/generate",
    GenerationType.VIDEO: "/api/v1/runway/generate",
    GenerationType.TEXT_TO_PROMPT: "/api/v1/generate/lyrics",
}

STATUS_PATHS: dict[GenerationType, str] = {
    GenerationType.IMAGE: "/api/v1/gpt4o-image/record-info",
    GenerationType.VIDEO: "/api/v1/runway/record-detail",
    GenerationType.TEXT_TO_PROMPT: "/api/v1/generate/record-info",
}

# Fields checked, in order, for a result returned at creation time
IMMEDIATE_RESULT_FIELDS: dict[GenerationType, tuple[str, ...]] = {
    GenerationType.IMAGE: ("result_url", "result"),
    GenerationType.TEXT_TO_PROMPT: ("result", "content"),
}


def build_payload(generation_type: GenerationType, prompt: str) -> dict[str, Any]:
    """Build the creation request body with the fixed parameters for a type."""
    if generation_type == GenerationType.IMAGE:
        return {"prompt": prompt, "size": "1:1"}
    if generation_type == GenerationType.VIDEO:
        return {"prompt": prompt, "aspect_ratio": "16:9"}
    if generation_type == GenerationType.TEXT_TO_PROMPT:
        return {"prompt": prompt}
    raise UnsupportedGenerationTypeError(generation_type.value)


def extract_task_id(response: dict[str, Any]) -> str:
    """
    Locate the upstream task id in a creation response.

    Checks ``data.taskId`` first, then a root-level ``taskId``.

    Raises:
        MissingExternalJobIdError: Neither location holds a task id
    """
    data = response.get("data")
    if isinstance(data, dict):
        task_id = data.get("taskId")
        if isinstance(task_id, str) and task_id:
            return task_id

    task_id = response.get("taskId")
    if isinstance(task_id, str) and task_id:
        return task_id

    raise MissingExternalJobIdError(
        f"Expected documented response format but got keys: {sorted(response.keys())}"
    )


def detect_immediate_result(
    generation_type: GenerationType, response: dict[str, Any]
) -> str | None:
    """Return a result already present in a creation response, if any."""
    data = response.get("data")
    if not isinstance(data, dict):
        return None

    for field in IMMEDIATE_RESULT_FIELDS.get(generation_type, ()):
        value = data.get(field)
        if isinstance(value, str) and value:
            return value
    return None


class KieClient:
    """Async client for the paid upstream generation API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.kie.ai",
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    @property
    def is_configured(self) -> bool:
        """Whether an API key is available."""
        return bool(self.api_key)

    async def create_job(self, generation_type: GenerationType, prompt: str) -> dict[str, Any]:
        """
        Submit a generation job.

        Raises:
            UpstreamConfigurationError: No API key configured
            UnsupportedGenerationTypeError: Type has no upstream capability
            UpstreamProviderError: Transport failure, non-2xx or non-JSON response
        """
        path = CREATE_PATHS.get(generation_type)
        if path is None:
            raise UnsupportedGenerationTypeError(generation_type.value)

        return await self._request(
            "POST",
            path,
            operation="create",
            generation_type=generation_type,
            json=build_payload(generation_type, prompt),
        )

    async def get_status(self, generation_type: GenerationType, task_id: str) -> dict[str, Any]:
        """
        Fetch the current state of an upstream job.

        Raises:
            UpstreamConfigurationError: No API key configured
            UnsupportedGenerationTypeError: Type has no upstream capability
            UpstreamProviderError: Transport failure, non-2xx or non-JSON response
        """
        path = STATUS_PATHS.get(generation_type)
        if path is None:
            raise UnsupportedGenerationTypeError(generation_type.value)

        return await self._request(
            "GET",
            path,
            operation="status",
            generation_type=generation_type,
            params={"taskId": task_id},
        )

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        generation_type: GenerationType,
        **kwargs: Any,
    ) -> dict[str, Any]:
        if not self.api_key:
            raise UpstreamConfigurationError("KIE_API_KEY is not set")

        headers = {"Authorization": f"Bearer {self.api_key}"}
        start = time.perf_counter()
        success = False

        try:
            response = await self.http_client.request(
                method, f"{self.base_url}{path}", headers=headers, **kwargs
            )
            if response.is_error:
                logger.error(
                    "upstream_http_error",
                    operation=operation,
                    generation_type=generation_type.value,
                    status=response.status_code,
                    text=response.text[:500],
                )
                raise UpstreamProviderError(
                    f"Upstream API error: {response.status_code} - {response.text}",
                    status_code=response.status_code,
                )

            try:
                body = response.json()
            except ValueError as e:
                raise UpstreamProviderError(
                    f"Upstream API returned invalid JSON: {e}",
                    status_code=response.status_code,
                ) from e

            if not isinstance(body, dict):
                raise UpstreamProviderError(
                    f"Upstream API returned {type(body).__name__}, expected an object",
                    status_code=response.status_code,
                )

            success = True
            return body

        except httpx.HTTPError as e:
            logger.error(
                "upstream_transport_error",
                operation=operation,
                generation_type=generation_type.value,
                error=str(e),
            )
            raise UpstreamProviderError(f"Upstream API request failed: {e}") from e
        finally:
            metrics.record_upstream_call(
                operation, generation_type.value, time.perf_counter() - start, success
            )

    async def check_reachable(self) -> bool:
        """Probe the upstream base URL; any HTTP response counts as reachable."""
        try:
            await self.http_client.get(self.base_url, timeout=5.0)
            return True
        except httpx.HTTPError:
            return False

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
