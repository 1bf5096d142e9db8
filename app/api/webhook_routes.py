"""
Webhook Routes - Identity provider user lifecycle events.

The signature is checked against the raw body before anything is parsed.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from app.db.session import get_db
from app.exceptions import DatabaseError, WebhookVerificationError
from app.models.api import WebhookAck
from app.services.identity import parse_webhook_event, verify_webhook
from app.services.profiles import ProfileSyncService

logger = get_logger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


@router.post("/identity", response_model=WebhookAck)
async def identity_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> WebhookAck:
    """
    Handle identity provider webhooks.

    Supports: user.created, user.updated, user.deleted. Other event types
    are acknowledged and ignored.
    """
    body = await request.body()

    try:
        payload = verify_webhook(body, request.headers)
        event = parse_webhook_event(payload)
    except WebhookVerificationError as exc:
        logger.warning("identity_webhook_rejected", reason=exc.message)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook verification error",
        ) from exc

    logger.info(
        "identity_webhook_received",
        event_type=event.event_type,
        user_id=event.data.user_id,
    )

    service = ProfileSyncService(db)
    try:
        message = await service.handle_event(event)
    except DatabaseError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=exc.message,
        ) from exc

    return WebhookAck(message=message)
