"""
Identity - Session verification, admin checks and webhook signatures.

Sessions are JWTs issued by the external identity provider; this service
only verifies them. Identity webhooks are signed with the Svix scheme.
"""

from collections.abc import Mapping
from typing import Any

import jwt
from structlog import get_logger
from svix.webhooks import Webhook
from svix.webhooks import WebhookVerificationError as SvixVerificationError

from app.config import Settings, settings
from app.exceptions import AuthenticationError, WebhookVerificationError
from app.models.domain import CallerIdentity, WebhookEvent, WebhookUserData

logger = get_logger(__name__)


# ============================================================================
# Sessions
# ============================================================================


class SessionVerifier:
    """Verifies identity-provider session tokens."""

    def __init__(
        self,
        secret: str = "",
        public_key: str = "",
        algorithms: list[str] | None = None,
        issuer: str | None = None,
    ) -> None:
        self.secret = secret
        self.public_key = public_key
        self.algorithms = algorithms or ["RS256", "HS256"]
        self.issuer = issuer

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "SessionVerifier":
        """Build a verifier from application settings."""
        config = config or settings
        return cls(
            secret=config.session_jwt_secret,
            public_key=config.session_jwt_public_key,
            algorithms=config.session_algorithms,
            issuer=config.session_jwt_issuer,
        )

    def _key_for(self, algorithm: str) -> str:
        if algorithm.startswith("HS"):
            return self.secret
        return self.public_key

    def verify(self, token: str) -> CallerIdentity:
        """
        Verify a session token and return the caller.

        Raises:
            AuthenticationError: Missing, expired or invalid token
        """
        if not token:
            raise AuthenticationError("Missing session token")

        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as e:
            raise AuthenticationError(f"Malformed session token: {e}") from e

        algorithm = header.get("alg", "")
        if algorithm not in self.algorithms:
            raise AuthenticationError(f"Unsupported token algorithm: {algorithm}")

        key = self._key_for(algorithm)
        if not key:
            raise AuthenticationError(f"No verification key configured for {algorithm}")

        options = {"require": ["exp", "sub"]}
        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                key,
                algorithms=[algorithm],
                issuer=self.issuer,
                options=options,
            )
        except jwt.ExpiredSignatureError as e:
            logger.warning("session_token_expired")
            raise AuthenticationError("Session token expired") from e
        except jwt.InvalidTokenError as e:
            logger.warning("session_token_invalid", error=str(e))
            raise AuthenticationError(f"Invalid session token: {e}") from e

        email = payload.get("email")
        return CallerIdentity(
            user_id=str(payload["sub"]),
            email=email if isinstance(email, str) and email else None,
        )


def is_admin(caller: CallerIdentity, config: Settings | None = None) -> bool:
    """A caller is an admin when its user ID or email is on the admin lists."""
    config = config or settings
    if caller.user_id in config.admin_user_id_list:
        return True
    if caller.email:
        return caller.email.lower() in config.admin_email_list
    return False


# ============================================================================
# Webhooks
# ============================================================================


def verify_webhook(
    body: bytes,
    headers: Mapping[str, str],
    secret: str | None = None,
) -> dict[str, Any]:
    """
    Verify a signed webhook and return its decoded JSON payload.

    Signature, header and timestamp checks are done by the Svix SDK, which
    rejects timestamps more than five minutes from now.

    Raises:
        WebhookVerificationError: Missing headers, stale timestamp or bad signature
    """
    secret = secret if secret is not None else settings.identity_webhook_secret
    if not secret:
        raise WebhookVerificationError("Webhook secret is not configured")

    try:
        webhook = Webhook(secret)
    except ValueError as e:
        raise WebhookVerificationError("Webhook secret is not valid base64") from e

    try:
        payload = webhook.verify(body, dict(headers))
    except SvixVerificationError as e:
        logger.warning("webhook_signature_rejected", message_id=headers.get("svix-id"))
        raise WebhookVerificationError(str(e)) from e
    except ValueError as e:
        raise WebhookVerificationError("Malformed webhook signature or body") from e

    if not isinstance(payload, dict):
        raise WebhookVerificationError("Webhook body must be a JSON object")
    return payload


def parse_webhook_event(payload: dict[str, Any]) -> WebhookEvent:
    """
    Extract the event type and user fields from a verified payload.

    Raises:
        WebhookVerificationError: Payload lacks a type or user ID
    """
    event_type = payload.get("type")
    data = payload.get("data")
    if not isinstance(event_type, str) or not isinstance(data, dict):
        raise WebhookVerificationError("Webhook payload missing type or data")

    user_id = data.get("id")
    if not isinstance(user_id, str) or not user_id:
        raise WebhookVerificationError("Webhook payload missing user id")

    email = data.get("email_address")
    addresses = data.get("email_addresses")
    if isinstance(addresses, list) and addresses and isinstance(addresses[0], dict):
        email = addresses[0].get("email_address") or email

    return WebhookEvent(
        event_type=event_type,
        data=WebhookUserData(
            user_id=user_id,
            email=email if isinstance(email, str) else None,
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
        ),
    )
