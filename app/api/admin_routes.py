"""
Admin API Routes - User listing and credit adjustment.

All endpoints require a caller on the admin lists.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from app.api.dependencies import get_kie_client, require_admin
from app.db.session import get_db
from app.exceptions import DatabaseError, ProfileNotFoundError
from app.models.api import (
    AdminTokenResponse,
    AdminUserItem,
    UpdateCreditsRequest,
    UpdateCreditsResponse,
)
from app.models.domain import CallerIdentity
from app.services.credits import CreditLedger
from app.services.kie_client import KieClient

logger = get_logger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/users", response_model=list[AdminUserItem])
async def list_users(
    admin: CallerIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> list[AdminUserItem]:
    """All users with their balances, newest first."""
    ledger = CreditLedger(db)
    profiles = await ledger.list_profiles()

    logger.info("admin_users_listed", admin_id=admin.user_id, count=len(profiles))
    return [
        AdminUserItem(id=profile.user_id, credits=profile.credits, email=profile.email)
        for profile in profiles
    ]


@router.post("/update-credits", response_model=UpdateCreditsResponse)
async def update_credits(
    request: UpdateCreditsRequest,
    admin: CallerIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> UpdateCreditsResponse:
    """Set a user's balance to an absolute value."""
    ledger = CreditLedger(db)

    try:
        await ledger.set_balance(request.userId, request.credits)
    except ProfileNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User profile not found",
        ) from exc
    except DatabaseError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=exc.message,
        ) from exc

    logger.info(
        "admin_credits_updated",
        admin_id=admin.user_id,
        target_user_id=request.userId,
        credits=request.credits,
    )
    return UpdateCreditsResponse(success=True, message="Credits updated successfully")


@router.get("/token", response_model=AdminTokenResponse)
async def get_token_status(
    admin: CallerIdentity = Depends(require_admin),
    kie_client: KieClient = Depends(get_kie_client),
) -> AdminTokenResponse:
    """Whether the upstream API key is configured. The key itself is never returned."""
    return AdminTokenResponse(token="Token is configured" if kie_client.is_configured else None)
