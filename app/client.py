"""
Polling client for the generation API.

Submits a prompt, then polls the status endpoint on a fixed interval until
the job reaches a terminal status.
"""

import asyncio
import time
from uuid import UUID

import httpx
from structlog import get_logger

from app.config import settings
from app.models.api import (
    GenerateFreeResponse,
    GenerateResponse,
    GenerationType,
    JobStatusResponse,
)

logger = get_logger(__name__)


class GenerationClientError(Exception):
    """Raised when the API answers with an error."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"API error {status_code}: {message}")


class GenerationTimeoutError(GenerationClientError):
    """Raised when a job is still running after the wait limit."""

    def __init__(self, job_id: UUID, waited_seconds: float) -> None:
        self.job_id = job_id
        self.waited_seconds = waited_seconds
        super().__init__(408, f"Job {job_id} not finished after {waited_seconds:.0f}s")


class GenerationClient:
    """Async client for submitting prompts and waiting on results."""

    def __init__(
        self,
        base_url: str,
        token: str,
        poll_interval: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.poll_interval = (
            poll_interval if poll_interval is not None else settings.status_poll_interval_seconds
        )
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=30.0)
        return self._http_client

    async def _request(self, method: str, path: str, **kwargs: object) -> dict[str, object]:
        response = await self.http_client.request(
            method,
            f"{self.base_url}{path}",
            headers={"Authorization": f"Bearer {self.token}"},
            **kwargs,  # type: ignore[arg-type]
        )
        if response.is_error:
            try:
                message = response.json().get("error", response.text)
            except ValueError:
                message = response.text
            raise GenerationClientError(response.status_code, str(message))
        body: dict[str, object] = response.json()
        return body

    async def submit(self, prompt: str, generation_type: GenerationType) -> GenerateResponse:
        """Create a paid generation job."""
        body = await self._request(
            "POST", "/api/generate", json={"prompt": prompt, "type": generation_type.value}
        )
        return GenerateResponse.model_validate(body)

    async def submit_free(self, prompt: str, model: str = "flux") -> GenerateFreeResponse:
        """Create a free image job."""
        body = await self._request(
            "POST", "/api/generate-free", json={"prompt": prompt, "model": model}
        )
        return GenerateFreeResponse.model_validate(body)

    async def get_status(self, job_id: UUID) -> JobStatusResponse:
        """Fetch a job's current status once."""
        body = await self._request("GET", f"/api/status/{job_id}")
        return JobStatusResponse.model_validate(body)

    async def wait_for_result(self, job_id: UUID, max_wait: float = 600.0) -> JobStatusResponse:
        """
        Poll until the job is completed or failed.

        Polling stops at the first terminal status; there is no further
        request after that.

        Raises:
            GenerationTimeoutError: Still running after ``max_wait`` seconds
        """
        started = time.monotonic()
        while True:
            result = await self.get_status(job_id)
            logger.debug("job_polled", job_id=str(job_id), status=result.status.value)
            if result.status.is_terminal:
                return result

            waited = time.monotonic() - started
            if waited + self.poll_interval > max_wait:
                raise GenerationTimeoutError(job_id, waited)
            await asyncio.sleep(self.poll_interval)

    async def generate(
        self, prompt: str, generation_type: GenerationType, max_wait: float = 600.0
    ) -> JobStatusResponse:
        """Submit a prompt and wait for its result."""
        job = await self.submit(prompt, generation_type)
        if job.status.is_terminal:
            return await self.get_status(job.internal_job_id)
        return await self.wait_for_result(job.internal_job_id, max_wait=max_wait)

    async def get_credits(self) -> int:
        """Caller's credit balance."""
        body = await self._request("GET", "/api/user/credits")
        return int(body["credits"])  # type: ignore[call-overload]

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
