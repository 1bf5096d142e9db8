"""
Domain Models - Internal business logic models using dataclasses.

NO DICTIONARIES - Core data structures are strongly typed immutable dataclasses.
"""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from app.models.api import GenerationType, JobStatus


@dataclass(frozen=True)
class CallerIdentity:
    """Authenticated caller resolved from an identity-provider session."""

    user_id: str
    email: str | None = None

    def __post_init__(self) -> None:
        """Validate identity fields."""
        if not self.user_id:
            raise ValueError("user_id cannot be empty")


@dataclass(frozen=True)
class ProfileData:
    """Immutable profile snapshot."""

    user_id: str
    email: str | None
    credits: int
    created_at: datetime
    updated_at: datetime

    def __post_init__(self) -> None:
        """Validate ledger constraints."""
        if self.credits < 0:
            raise ValueError(f"Credits cannot be negative: {self.credits}")


@dataclass(frozen=True)
class GenerationIntent:
    """A validated request to create a generation before dispatch."""

    caller: CallerIdentity
    prompt: str
    type: GenerationType

    def __post_init__(self) -> None:
        """Validate generation constraints."""
        if not self.prompt.strip():
            raise ValueError("Prompt cannot be empty")


@dataclass(frozen=True)
class GenerationData:
    """Immutable generation data after persistence."""

    generation_id: UUID
    user_id: str
    prompt: str
    type: GenerationType
    status: JobStatus
    job_id_external: str | None
    result_url: str | None
    error_message: str | None
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class CreatedJob:
    """Outcome of a successful job creation."""

    generation_id: UUID
    external_job_id: str
    status: JobStatus
    result_url: str | None = None


@dataclass(frozen=True)
class NormalizedStatus:
    """Upstream status reduced to the internal enum."""

    status: JobStatus
    result_url: str | None = None
    error_message: str | None = None
    rule: str | None = None

    @property
    def recognized(self) -> bool:
        """Whether any known response shape matched."""
        return self.rule is not None


@dataclass(frozen=True)
class StatusResult:
    """What the status endpoint reports back to the caller."""

    status: JobStatus
    url: str | None
    error_message: str | None
    from_cache: bool = False


@dataclass(frozen=True)
class FreeImageParams:
    """Parameters for a free image URL."""

    prompt: str
    model: str
    width: int
    height: int
    seed: int
    nologo: bool = True


@dataclass(frozen=True)
class FreeImageResult:
    """A free image URL ready to be served."""

    image_url: str
    model: str
    prompt: str
    seed: int

    @property
    def external_job_id(self) -> str:
        """Synthetic external id distinguishing free jobs."""
        return f"free_{self.model}_{self.seed}"


@dataclass(frozen=True)
class DeductionResult:
    """Balance before and after a credit deduction."""

    credits_before: int
    credits_after: int


@dataclass(frozen=True)
class WebhookUserData:
    """User payload from an identity-provider webhook."""

    user_id: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None


@dataclass(frozen=True)
class WebhookEvent:
    """Verified identity-provider webhook event."""

    event_type: str
    data: WebhookUserData


@dataclass
class ActivityRecord:
    """One structured activity entry for the pluggable sink."""

    action: str
    user_id: str | None = None
    job_id: str | None = None
    external_job_id: str | None = None
    status: str | None = None
    type: str | None = None
    response_time_ms: float | None = None
    error: str | None = None
    metadata: dict[str, object] = field(default_factory=dict)
