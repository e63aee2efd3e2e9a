"""Custom exceptions for the formsynth response engine."""

from typing import Optional


class FormSynthError(Exception):
    """Base exception for all engine errors."""
    pass


class SchemaError(FormSynthError):
    """Raised when a question schema cannot be processed."""

    def __init__(self, message: str, question_id: Optional[str] = None):
        super().__init__(message)
        self.question_id = question_id


class RowValidationError(FormSynthError):
    """Raised when a compiled row leaves a required question empty."""

    def __init__(self, message: str, row_index: Optional[int] = None, question_id: Optional[str] = None):
        super().__init__(message)
        self.row_index = row_index
        self.question_id = question_id


class DeliveryFailure(FormSynthError):
    """Raised when a payload could not be delivered to the form endpoint."""

    def __init__(self, reason: str, status_code: Optional[int] = None, retryable: bool = False):
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code
        self.retryable = retryable


class FatalEngineError(FormSynthError):
    """Raised when allocation, alignment or compilation fails for the whole run."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class ConfigurationError(FormSynthError):
    """Raised when configuration is invalid."""
    pass
