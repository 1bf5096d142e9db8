"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.
"""

from uuid import UUID


class GenerationError(Exception):
    """Base exception for all generation service errors."""

    pass


class ValidationError(GenerationError):
    """Raised when request input is invalid."""

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        self.message = message
        self.details = details or []
        super().__init__(message)


class InsufficientCreditsError(GenerationError):
    """Raised when a profile has no credit left for a generation."""

    def __init__(self, balance: int, required: int) -> None:
        self.balance = balance
        self.required = required
        super().__init__(f"Insufficient credits. Balance: {balance}, Required: {required}")


class ProfileNotFoundError(GenerationError):
    """Raised when a profile doesn't exist."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(f"Profile not found: {user_id}")


class GenerationNotFoundError(GenerationError):
    """Raised when a generation doesn't exist or belongs to another user."""

    def __init__(self, generation_id: UUID) -> None:
        self.generation_id = generation_id
        super().__init__(f"Generation not found: {generation_id}")


class MissingExternalJobIdError(GenerationError):
    """Raised when no upstream job identifier can be located."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Failed to get job ID from upstream provider: {message}")


class UpstreamProviderError(GenerationError):
    """Raised when the upstream generation API call fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class UpstreamConfigurationError(GenerationError):
    """Raised when the upstream API is not configured."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Upstream provider misconfigured: {message}")


class UnsupportedGenerationTypeError(GenerationError):
    """Raised when a generation type has no provider."""

    def __init__(self, generation_type: str) -> None:
        self.generation_type = generation_type
        super().__init__(f"Unsupported generation type: {generation_type}")


class CreditDeductionError(GenerationError):
    """Raised when the credit decrement could not be written."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Failed to deduct credit: {message}")


class DatabaseError(GenerationError):
    """Raised when database operation fails unexpectedly."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Database error: {message}")


class WebhookVerificationError(GenerationError):
    """Raised when webhook verification fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Webhook verification error: {message}")


class AuthenticationError(GenerationError):
    """Raised when a session token is missing or invalid."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Authentication failed: {message}")
