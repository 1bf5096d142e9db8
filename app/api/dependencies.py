"""
FastAPI Dependencies - Authentication, authorization and collaborators.

NO DICTIONARIES - All dependencies return typed objects.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from structlog import get_logger

from app.config import settings
from app.exceptions import AuthenticationError
from app.models.domain import CallerIdentity
from app.observability.activity import ActivityLogger, get_activity_logger
from app.services.identity import SessionVerifier, is_admin
from app.services.kie_client import KieClient

logger = get_logger(__name__)

# Bearer token scheme for session auth
bearer_scheme = HTTPBearer(auto_error=False)

_session_verifier: SessionVerifier | None = None
_kie_client: KieClient | None = None


def get_session_verifier() -> SessionVerifier:
    """Get the process-wide session verifier."""
    global _session_verifier
    if _session_verifier is None:
        _session_verifier = SessionVerifier.from_settings()
    return _session_verifier


def get_kie_client() -> KieClient:
    """Get the process-wide upstream API client."""
    global _kie_client
    if _kie_client is None:
        _kie_client = KieClient(
            api_key=settings.kie_api_key,
            base_url=settings.kie_base_url,
            timeout=settings.upstream_timeout_seconds,
        )
    return _kie_client


async def close_kie_client() -> None:
    """Close the upstream client (for graceful shutdown)."""
    global _kie_client
    if _kie_client is not None:
        await _kie_client.close()
        _kie_client = None


def get_activity() -> ActivityLogger:
    """FastAPI dependency for the activity logger."""
    return get_activity_logger()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    verifier: SessionVerifier = Depends(get_session_verifier),
) -> CallerIdentity:
    """
    FastAPI dependency resolving the caller from an identity-provider session.

    Accepts: Authorization: Bearer {session_jwt}

    Raises:
        HTTPException 401 if no token or invalid token
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return verifier.verify(credentials.credentials)
    except AuthenticationError as exc:
        logger.warning("session_rejected", reason=exc.message)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


async def require_admin(
    caller: CallerIdentity = Depends(get_current_user),
) -> CallerIdentity:
    """
    FastAPI dependency that only admits admins.

    Raises:
        HTTPException 403 if the caller is not on the admin lists
    """
    if not is_admin(caller):
        logger.warning("admin_access_denied", user_id=caller.user_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden: Admin access required",
        )
    return caller
