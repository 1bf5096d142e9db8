"""
Generation Service - Job creation, status reconciliation and history.

NO DICTIONARIES - All operations use strongly typed domain models.

Job creation inserts the generation and then deducts the credit as two
separate commits. If the deduction fails the inserted row is deleted again,
so a generation only survives once its credit has been taken.
"""

import time
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from app.config import settings
from app.db.models import Generation, utc_now
from app.exceptions import (
    CreditDeductionError,
    DatabaseError,
    GenerationNotFoundError,
    InsufficientCreditsError,
    MissingExternalJobIdError,
    UpstreamProviderError,
    ValidationError,
)
from app.models.api import GenerationType, JobStatus
from app.models.domain import (
    ActivityRecord,
    CallerIdentity,
    CreatedJob,
    FreeImageResult,
    GenerationData,
    GenerationIntent,
    StatusResult,
)
from app.observability.activity import ActivityLogger
from app.observability.metrics import metrics
from app.observability.tracing import trace_operation
from app.services.credits import CreditLedger
from app.services.free_image import generate_free_image, resolve_params, validate_image_params
from app.services.kie_client import KieClient, detect_immediate_result, extract_task_id
from app.services.status_normalizer import normalize_status

logger = get_logger(__name__)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


class GenerationService:
    """Creates generation jobs and keeps their status in step with the provider."""

    def __init__(
        self,
        session: AsyncSession,
        kie_client: KieClient,
        activity: ActivityLogger,
    ) -> None:
        """Initialize generation service with database session and collaborators."""
        self.session = session
        self.kie_client = kie_client
        self.activity = activity
        self.ledger = CreditLedger(session)

    # ========================================================================
    # Job creation
    # ========================================================================

    async def create_job(self, intent: GenerationIntent) -> CreatedJob:
        """
        Create a paid generation job.

        Raises:
            ValidationError: Prompt too long
            InsufficientCreditsError: Caller has no credit left
            UpstreamProviderError: Upstream rejected the job
            UpstreamConfigurationError: Upstream API key missing
            MissingExternalJobIdError: Upstream accepted but returned no task id
            CreditDeductionError: Credit could not be taken (row removed again)
            DatabaseError: Generation could not be written
        """
        caller = intent.caller
        self._validate_prompt(intent.prompt)

        profile = await self.ledger.ensure_profile(caller.user_id, caller.email)
        self.ledger.require_credit(profile)

        await self.activity.log(
            ActivityRecord(
                action="generate_request",
                user_id=caller.user_id,
                type=intent.type.value,
                metadata={"prompt_length": len(intent.prompt)},
            )
        )

        start = time.perf_counter()
        try:
            with trace_operation("upstream_create", generation_type=intent.type.value):
                response = await self.kie_client.create_job(intent.type, intent.prompt)
        except UpstreamProviderError as e:
            await self.activity.log(
                ActivityRecord(
                    action="kie_api_error",
                    user_id=caller.user_id,
                    type=intent.type.value,
                    error=e.message,
                    response_time_ms=_elapsed_ms(start),
                )
            )
            raise

        await self.activity.log(
            ActivityRecord(
                action="kie_api_success",
                user_id=caller.user_id,
                type=intent.type.value,
                response_time_ms=_elapsed_ms(start),
                metadata={"response_keys": sorted(response.keys())},
            )
        )

        try:
            external_job_id = extract_task_id(response)
        except MissingExternalJobIdError as e:
            await self.activity.log(
                ActivityRecord(
                    action="job_id_missing_error",
                    user_id=caller.user_id,
                    type=intent.type.value,
                    error=e.message,
                )
            )
            raise

        result_url = detect_immediate_result(intent.type, response)
        status = JobStatus.COMPLETED if result_url else JobStatus.PENDING

        generation = await self._insert_generation(
            user_id=caller.user_id,
            prompt=intent.prompt,
            generation_type=intent.type,
            status=status,
            external_job_id=external_job_id,
            result_url=result_url,
        )
        await self.activity.log(
            ActivityRecord(
                action="job_created",
                user_id=caller.user_id,
                job_id=str(generation.id),
                external_job_id=external_job_id,
                type=intent.type.value,
                status=status.value,
            )
        )

        await self._charge(generation.id, caller.user_id, intent.type)
        metrics.record_generation_created(intent.type.value, status.value)

        return CreatedJob(
            generation_id=generation.id,
            external_job_id=external_job_id,
            status=status,
            result_url=result_url,
        )

    async def create_free_image_job(
        self,
        caller: CallerIdentity,
        prompt: str,
        model: str | None = None,
        width: int | None = None,
        height: int | None = None,
        seed: int | None = None,
        nologo: bool = True,
    ) -> tuple[CreatedJob, FreeImageResult]:
        """
        Create a free image job. The result URL is known immediately.

        Raises:
            ValidationError: Invalid prompt, size or model
            InsufficientCreditsError: Caller has no credit left
            CreditDeductionError: Credit could not be taken (row removed again)
            DatabaseError: Generation could not be written
        """
        errors = validate_image_params(prompt, width=width, height=height, model=model)
        if errors:
            raise ValidationError("Validation failed", errors)

        profile = await self.ledger.ensure_profile(caller.user_id, caller.email)
        self.ledger.require_credit(profile)

        params = resolve_params(prompt, model=model, width=width, height=height, seed=seed, nologo=nologo)
        await self.activity.log(
            ActivityRecord(
                action="generate_free_request",
                user_id=caller.user_id,
                type=GenerationType.FREE_IMAGE.value,
                metadata={
                    "prompt_length": len(prompt),
                    "model": params.model,
                    "width": params.width,
                    "height": params.height,
                },
            )
        )

        image = generate_free_image(params)
        generation = await self._insert_generation(
            user_id=caller.user_id,
            prompt=prompt,
            generation_type=GenerationType.FREE_IMAGE,
            status=JobStatus.COMPLETED,
            external_job_id=image.external_job_id,
            result_url=image.image_url,
        )
        await self.activity.log(
            ActivityRecord(
                action="free_job_created",
                user_id=caller.user_id,
                job_id=str(generation.id),
                external_job_id=image.external_job_id,
                type=GenerationType.FREE_IMAGE.value,
                status=JobStatus.COMPLETED.value,
            )
        )

        await self._charge(generation.id, caller.user_id, GenerationType.FREE_IMAGE)
        metrics.record_generation_created(GenerationType.FREE_IMAGE.value, JobStatus.COMPLETED.value)

        job = CreatedJob(
            generation_id=generation.id,
            external_job_id=image.external_job_id,
            status=JobStatus.COMPLETED,
            result_url=image.image_url,
        )
        return job, image

    # ========================================================================
    # Status reconciliation
    # ========================================================================

    async def reconcile_status(self, generation_id: UUID, caller: CallerIdentity) -> StatusResult:
        """
        Bring a job's stored status in line with the provider.

        Terminal jobs are answered from the database without an upstream
        call. An upstream failure while polling marks the job failed.

        Raises:
            GenerationNotFoundError: No such job for this caller
            MissingExternalJobIdError: Non-terminal job without an upstream id
            UnsupportedGenerationTypeError: Job type has no status endpoint
            DatabaseError: Status update could not be written
        """
        generation = await self._find_generation(generation_id, caller.user_id)
        if generation is None:
            await self.activity.log(
                ActivityRecord(
                    action="job_fetch_error",
                    user_id=caller.user_id,
                    job_id=str(generation_id),
                    error="Job not found",
                )
            )
            raise GenerationNotFoundError(generation_id)

        stored_status = JobStatus(generation.status)
        if stored_status.is_terminal:
            await self.activity.log(
                ActivityRecord(
                    action="status_check_cached",
                    user_id=caller.user_id,
                    job_id=str(generation.id),
                    status=stored_status.value,
                    metadata={"result_url_exists": bool(generation.result_url)},
                )
            )
            metrics.record_status_check(generation.type, stored_status.value, cached=True)
            return StatusResult(
                status=stored_status,
                url=generation.result_url,
                error_message=generation.error_message,
                from_cache=True,
            )

        external_job_id = generation.job_id_external
        if not external_job_id:
            await self.activity.log(
                ActivityRecord(
                    action="external_job_id_missing",
                    user_id=caller.user_id,
                    job_id=str(generation.id),
                    status=stored_status.value,
                )
            )
            raise MissingExternalJobIdError("External job ID not found")

        generation_type = GenerationType(generation.type)
        start = time.perf_counter()
        try:
            with trace_operation(
                "upstream_status", generation_type=generation_type.value, job_id=str(generation.id)
            ):
                response = await self.kie_client.get_status(generation_type, external_job_id)
        except UpstreamProviderError as e:
            await self._update_generation(
                generation, JobStatus.FAILED, generation.result_url, e.message
            )
            await self.activity.log(
                ActivityRecord(
                    action="kie_api_status_error",
                    user_id=caller.user_id,
                    job_id=str(generation.id),
                    external_job_id=external_job_id,
                    type=generation_type.value,
                    error=e.message,
                    response_time_ms=_elapsed_ms(start),
                )
            )
            metrics.record_status_check(generation_type.value, JobStatus.FAILED.value, cached=False)
            return StatusResult(
                status=JobStatus.FAILED,
                url=generation.result_url,
                error_message=e.message,
            )

        normalized = normalize_status(response)
        if not normalized.recognized:
            metrics.unrecognized_responses_total.labels(generation_type=generation_type.value).inc()
            await self.activity.log(
                ActivityRecord(
                    action="unexpected_response_format",
                    user_id=caller.user_id,
                    job_id=str(generation.id),
                    external_job_id=external_job_id,
                    type=generation_type.value,
                    error="Response does not match any known upstream format",
                    metadata={"response_keys": sorted(response.keys())},
                )
            )

        result_url = normalized.result_url or generation.result_url
        error_message = normalized.error_message or generation.error_message
        if stored_status != normalized.status or result_url != generation.result_url:
            await self._update_generation(generation, normalized.status, result_url, error_message)
            await self.activity.log(
                ActivityRecord(
                    action="status_updated",
                    user_id=caller.user_id,
                    job_id=str(generation.id),
                    type=generation_type.value,
                    status=normalized.status.value,
                    metadata={
                        "previous_status": stored_status.value,
                        "has_result_url": bool(result_url),
                    },
                )
            )

        await self.activity.log(
            ActivityRecord(
                action="status_check",
                user_id=caller.user_id,
                job_id=str(generation.id),
                external_job_id=external_job_id,
                type=generation_type.value,
                status=normalized.status.value,
                response_time_ms=_elapsed_ms(start),
                metadata={"rule": normalized.rule},
            )
        )
        metrics.record_status_check(generation_type.value, normalized.status.value, cached=False)

        return StatusResult(
            status=normalized.status,
            url=result_url,
            error_message=error_message if normalized.status == JobStatus.FAILED else None,
        )

    # ========================================================================
    # History
    # ========================================================================

    async def list_generations(self, user_id: str) -> list[GenerationData]:
        """Caller's generations, newest first."""
        stmt = (
            select(Generation)
            .where(Generation.user_id == user_id)
            .order_by(Generation.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return [self._generation_to_domain(g) for g in result.scalars().all()]

    # ========================================================================
    # Helpers
    # ========================================================================

    @staticmethod
    def _validate_prompt(prompt: str) -> None:
        if not prompt or not prompt.strip():
            raise ValidationError("Prompt is required")
        if len(prompt) > settings.prompt_max_length:
            raise ValidationError(
                f"Prompt must be less than {settings.prompt_max_length} characters"
            )

    async def _charge(self, generation_id: UUID, user_id: str, generation_type: GenerationType) -> None:
        """Deduct the credit for a just-inserted generation, removing it on failure."""
        try:
            deduction = await self.ledger.deduct(user_id)
        except (InsufficientCreditsError, CreditDeductionError) as e:
            await self._delete_generation(generation_id)
            metrics.compensating_deletes_total.labels(generation_type=generation_type.value).inc()
            await self.activity.log(
                ActivityRecord(
                    action="credit_deduction_error",
                    user_id=user_id,
                    job_id=str(generation_id),
                    type=generation_type.value,
                    error=str(e),
                )
            )
            raise

        await self.activity.log(
            ActivityRecord(
                action="credit_deducted",
                user_id=user_id,
                job_id=str(generation_id),
                type=generation_type.value,
                metadata={
                    "credits_before": deduction.credits_before,
                    "credits_after": deduction.credits_after,
                },
            )
        )

    async def _insert_generation(
        self,
        user_id: str,
        prompt: str,
        generation_type: GenerationType,
        status: JobStatus,
        external_job_id: str,
        result_url: str | None,
    ) -> Generation:
        generation = Generation(
            id=uuid4(),
            user_id=user_id,
            prompt=prompt,
            type=generation_type.value,
            status=status.value,
            job_id_external=external_job_id,
            result_url=result_url,
        )
        self.session.add(generation)

        try:
            await self.session.flush()
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                "generation_insert_failed",
                user_id=user_id,
                external_job_id=external_job_id,
                error=str(e),
            )
            raise DatabaseError(f"Failed to create generation record: {e}") from e

        logger.info(
            "generation_created",
            generation_id=str(generation.id),
            user_id=user_id,
            generation_type=generation_type.value,
            status=status.value,
        )
        return generation

    async def _delete_generation(self, generation_id: UUID) -> None:
        """Compensating delete. A failure here is logged; the caller re-raises the original error."""
        try:
            await self.session.execute(delete(Generation).where(Generation.id == generation_id))
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("compensating_delete_failed", generation_id=str(generation_id), error=str(e))
            return

        logger.warning("generation_rolled_back", generation_id=str(generation_id))

    async def _find_generation(self, generation_id: UUID, user_id: str) -> Generation | None:
        """Find generation by ID, scoped to its owner."""
        stmt = select(Generation).where(
            Generation.id == generation_id,
            Generation.user_id == user_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _update_generation(
        self,
        generation: Generation,
        status: JobStatus,
        result_url: str | None,
        error_message: str | None,
    ) -> None:
        generation.status = status.value
        generation.result_url = result_url
        generation.error_message = error_message
        generation.updated_at = utc_now()

        try:
            await self.session.flush()
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("generation_update_failed", generation_id=str(generation.id), error=str(e))
            raise DatabaseError("Failed to update job status") from e

    @staticmethod
    def _generation_to_domain(generation: Generation) -> GenerationData:
        """Convert ORM model to domain model."""
        return GenerationData(
            generation_id=generation.id,
            user_id=generation.user_id,
            prompt=generation.prompt,
            type=GenerationType(generation.type),
            status=JobStatus(generation.status),
            job_id_external=generation.job_id_external,
            result_url=generation.result_url,
            error_message=generation.error_message,
            created_at=generation.created_at,
            updated_at=generation.updated_at,
        )
