"""
Domain-specific exceptions for the settlement and OCR core.

Settlement errors are business rule violations surfaced straight to the
caller; none of them is retried. Recognition errors are recovered by the
OCR orchestrator and only surface when every engine failed.
"""
from typing import Optional


class ClubFeeError(Exception):
    """Base exception for all clubfee errors."""
    pass


class InvalidArgumentError(ClubFeeError, ValueError):
    """Raised for malformed input: negative fee, empty roster, bad rounding unit."""
    pass


class NotFoundError(ClubFeeError, LookupError):
    """Raised when a settlement or participant does not exist."""
    pass


class AlreadyExistsError(ClubFeeError):
    """Raised when a meeting already has a settlement or a member is already a participant."""
    pass


class ConflictError(ClubFeeError):
    """Raised when amounts would be recomputed while payments are recorded."""
    pass


class RecognitionError(ClubFeeError):
    """Raised when a text recognition engine fails."""

    def __init__(self, message: str, engine: Optional[str] = None):
        super().__init__(message)
        self.engine = engine


class EngineUnavailableError(RecognitionError):
    """Raised when a recognition engine is not configured."""
    pass
