"""Custom exception hierarchy."""

from datetime import datetime
from typing import Optional


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class APIClientError(AppError):
    """Raised when an external API call fails."""
    pass


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""
    pass


class NotFoundError(AppError):
    """Raised when a requested record does not exist."""
    pass


class ValidationError(AppError):
    """Raised when user input is invalid (bad file type, size, format)."""
    pass


class CascadeConfirmationRequired(ValidationError):
    """Raised when a template edit would re-evaluate entities without PM consent."""
    def __init__(self, message: str, affected_count: int):
        super().__init__(message)
        self.affected_count = affected_count


class AuthzError(AppError):
    """Raised for an invalid, inactive or expired portal token.

    The message is deliberately identical for every cause.
    """
    pass


class RateLimitError(AppError):
    """Raised when a portal token exceeds its upload attempt budget."""
    pass


class ExtractionError(AppError):
    """Raised when the document extractor fails or rejects a document."""
    pass


class DuplicateWarning(AppError):
    """Raised when an identical file was uploaded before for the same entity.

    Not a hard failure: the caller may resubmit with explicit confirmation.
    """
    def __init__(self, message: str, certificate_id=None, uploaded_at: Optional[datetime] = None):
        super().__init__(message)
        self.certificate_id = certificate_id
        self.uploaded_at = uploaded_at


class InvalidStatusTransitionError(AppError):
    """Raised when a state machine is asked to make an illegal move."""
    pass
