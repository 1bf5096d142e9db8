"""
API Models - Pydantic models for request/response validation.

NO DICTIONARIES - Request and response bodies are strongly typed.
"""

from enum import Enum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class GenerationType(str, Enum):
    """Kind of content a generation produces."""

    TEXT_TO_PROMPT = "text_to_prompt"
    IMAGE = "image"
    VIDEO = "video"
    FREE_IMAGE = "free_image"


# Types dispatched to the paid upstream API
PAID_GENERATION_TYPES = (
    GenerationType.TEXT_TO_PROMPT,
    GenerationType.IMAGE,
    GenerationType.VIDEO,
)


class JobStatus(str, Enum):
    """Lifecycle status of a generation job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Completed and failed jobs never transition again."""
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


FreeImageModel = Literal["flux", "stability-ai", "turbo"]


# ============================================================================
# Generation Models
# ============================================================================


class GenerateRequest(BaseModel):
    """POST /api/generate request body."""

    prompt: str = Field(..., description="Text prompt for the generation")
    type: GenerationType

    @field_validator("prompt")
    @classmethod
    def validate_prompt(cls, v: str) -> str:
        """Prompt must contain something other than whitespace."""
        if not v.strip():
            raise ValueError("Prompt is required")
        return v

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: GenerationType) -> GenerationType:
        """Free images have their own endpoint."""
        if v not in PAID_GENERATION_TYPES:
            raise ValueError("Invalid generation type")
        return v


class GenerateResponse(BaseModel):
    """POST /api/generate response."""

    internal_job_id: UUID
    external_job_id: str
    status: JobStatus


class GenerateFreeRequest(BaseModel):
    """POST /api/generate-free request body."""

    prompt: str = ""
    model: FreeImageModel = "flux"
    width: int | None = None
    height: int | None = None
    seed: int | None = None
    nologo: bool = True


class GenerateFreeResponse(BaseModel):
    """POST /api/generate-free response."""

    internal_job_id: UUID
    external_job_id: str
    status: JobStatus
    result_url: str
    model_used: str
    prompt_used: str


class FreeModelInfo(BaseModel):
    """Catalogue entry for a free image model."""

    name: str
    description: str
    style: str


class FreeModelsResponse(BaseModel):
    """GET /api/generate-free response."""

    success: bool = True
    models: dict[str, FreeModelInfo]
    defaultModel: str


class JobStatusResponse(BaseModel):
    """GET /api/status/{job_id} response."""

    status: JobStatus
    url: str | None = None
    error_message: str | None = None


class GenerationItem(BaseModel):
    """Single generation in a user's history."""

    id: UUID
    user_id: str
    prompt: str
    type: GenerationType
    status: JobStatus
    job_id_external: str | None
    result_url: str | None
    error_message: str | None
    created_at: str
    updated_at: str


class GenerationListResponse(BaseModel):
    """GET /api/user/generations response."""

    generations: list[GenerationItem]


# ============================================================================
# Credit Models
# ============================================================================


class CreditBalanceResponse(BaseModel):
    """GET /api/user/credits response."""

    credits: int


class UpdateCreditsRequest(BaseModel):
    """POST /api/admin/update-credits request body."""

    userId: str = Field(..., min_length=1, max_length=255)
    credits: int = Field(..., ge=0, description="New absolute credit balance")


class UpdateCreditsResponse(BaseModel):
    """POST /api/admin/update-credits response."""

    success: bool
    message: str


class AdminUserItem(BaseModel):
    """Admin listing entry."""

    id: str
    credits: int
    email: str | None


class AdminTokenResponse(BaseModel):
    """GET /api/admin/token response - never includes the key itself."""

    token: str | None


# ============================================================================
# Webhook Models
# ============================================================================


class WebhookAck(BaseModel):
    """Identity webhook acknowledgement."""

    message: str


# ============================================================================
# Health Models
# ============================================================================


class HealthResponse(BaseModel):
    """GET /health response."""

    status: Literal["healthy", "unhealthy"]
    database: Literal["connected", "disconnected"]
    timestamp: str
