"""
API Routes - FastAPI endpoints for generation, status and credits.

NO DICTIONARIES - All requests/responses use Pydantic models.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from app.api.dependencies import get_activity, get_current_user, get_kie_client
from app.config import settings
from app.db.session import get_db
from app.exceptions import (
    CreditDeductionError,
    DatabaseError,
    GenerationNotFoundError,
    InsufficientCreditsError,
    MissingExternalJobIdError,
    UnsupportedGenerationTypeError,
    UpstreamConfigurationError,
    UpstreamProviderError,
    ValidationError,
)
from app.models.api import (
    CreditBalanceResponse,
    FreeModelsResponse,
    GenerateFreeRequest,
    GenerateFreeResponse,
    GenerateRequest,
    GenerateResponse,
    GenerationItem,
    GenerationListResponse,
    JobStatusResponse,
)
from app.models.domain import CallerIdentity, GenerationIntent
from app.observability.activity import ActivityLogger
from app.services.credits import CreditLedger
from app.services.free_image import AVAILABLE_MODELS
from app.services.generation import GenerationService
from app.services.kie_client import KieClient

logger = get_logger(__name__)

router = APIRouter(prefix="/api")


def _validation_exception(exc: ValidationError) -> HTTPException:
    detail: str | dict[str, object] = exc.message
    if exc.details:
        detail = {"error": exc.message, "details": exc.details}
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


@router.post("/generate", response_model=GenerateResponse)
async def create_generation(
    request: GenerateRequest,
    caller: CallerIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    kie_client: KieClient = Depends(get_kie_client),
    activity: ActivityLogger = Depends(get_activity),
) -> GenerateResponse:
    """
    Create a paid generation job.

    Takes one credit on success. A new caller gets a profile with the
    starting grant first.
    """
    service = GenerationService(db, kie_client, activity)
    intent = GenerationIntent(caller=caller, prompt=request.prompt, type=request.type)

    try:
        job = await service.create_job(intent)
    except ValidationError as exc:
        raise _validation_exception(exc) from exc
    except InsufficientCreditsError as exc:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail="Insufficient credits",
        ) from exc
    except UpstreamProviderError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=exc.message,
        ) from exc
    except (
        UpstreamConfigurationError,
        MissingExternalJobIdError,
        CreditDeductionError,
        DatabaseError,
    ) as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc

    return GenerateResponse(
        internal_job_id=job.generation_id,
        external_job_id=job.external_job_id,
        status=job.status,
    )


@router.get("/generate-free", response_model=FreeModelsResponse)
async def list_free_models() -> FreeModelsResponse:
    """Catalogue of free image models."""
    return FreeModelsResponse(
        success=True,
        models=AVAILABLE_MODELS,
        defaultModel=settings.free_image_default_model,
    )


@router.post("/generate-free", response_model=GenerateFreeResponse)
async def create_free_generation(
    request: GenerateFreeRequest,
    caller: CallerIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    kie_client: KieClient = Depends(get_kie_client),
    activity: ActivityLogger = Depends(get_activity),
) -> GenerateFreeResponse:
    """
    Create a free image job.

    The image URL is returned immediately. A credit is still taken.
    """
    service = GenerationService(db, kie_client, activity)

    try:
        job, image = await service.create_free_image_job(
            caller,
            request.prompt,
            model=request.model,
            width=request.width,
            height=request.height,
            seed=request.seed,
            nologo=request.nologo,
        )
    except ValidationError as exc:
        raise _validation_exception(exc) from exc
    except InsufficientCreditsError as exc:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail="Insufficient credits",
        ) from exc
    except (CreditDeductionError, DatabaseError) as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc

    return GenerateFreeResponse(
        internal_job_id=job.generation_id,
        external_job_id=job.external_job_id,
        status=job.status,
        result_url=image.image_url,
        model_used=image.model,
        prompt_used=image.prompt,
    )


@router.get("/status/{job_id}", response_model=JobStatusResponse)
async def get_job_status(
    job_id: UUID,
    caller: CallerIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    kie_client: KieClient = Depends(get_kie_client),
    activity: ActivityLogger = Depends(get_activity),
) -> JobStatusResponse:
    """
    Current status of a job.

    Finished jobs are answered from storage; others are checked upstream.
    """
    service = GenerationService(db, kie_client, activity)

    try:
        result = await service.reconcile_status(job_id, caller)
    except GenerationNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found",
        ) from exc
    except UnsupportedGenerationTypeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unsupported generation type",
        ) from exc
    except MissingExternalJobIdError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="External job ID not found",
        ) from exc
    except (UpstreamConfigurationError, DatabaseError) as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc

    return JobStatusResponse(
        status=result.status,
        url=result.url,
        error_message=result.error_message,
    )


@router.get("/user/credits", response_model=CreditBalanceResponse)
async def get_credits(
    caller: CallerIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> CreditBalanceResponse:
    """Caller's credit balance (0 before the first generation)."""
    ledger = CreditLedger(db)
    return CreditBalanceResponse(credits=await ledger.get_balance(caller.user_id))


@router.get("/user/generations", response_model=GenerationListResponse)
async def list_generations(
    caller: CallerIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    kie_client: KieClient = Depends(get_kie_client),
    activity: ActivityLogger = Depends(get_activity),
) -> GenerationListResponse:
    """Caller's generation history, newest first."""
    service = GenerationService(db, kie_client, activity)
    generations = await service.list_generations(caller.user_id)

    return GenerationListResponse(
        generations=[
            GenerationItem(
                id=g.generation_id,
                user_id=g.user_id,
                prompt=g.prompt,
                type=g.type,
                status=g.status,
                job_id_external=g.job_id_external,
                result_url=g.result_url,
                error_message=g.error_message,
                created_at=g.created_at.isoformat(),
                updated_at=g.updated_at.isoformat(),
            )
            for g in generations
        ]
    )
