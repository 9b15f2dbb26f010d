"""
Tailor Ops Exceptions

Error taxonomy raised by the lifecycle engine, the entity store and the
aggregators. Every error surfaces synchronously to the caller.
"""

from typing import Optional


class TailorOpsError(Exception):
    """Base exception for tailor ops errors"""

    code = "error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(TailorOpsError):
    """Exception for bad or missing input data"""
    code = "validation_error"


class NotFound(ValidationError):
    """Exception for ids that do not resolve to a record"""
    code = "not_found"


class InvalidTransition(TailorOpsError):
    """Exception for transitions that are illegal from the current status"""
    code = "invalid_transition"


class InvalidOperation(TailorOpsError):
    """Exception for operations disallowed by the aggregate's current state"""
    code = "invalid_operation"


class StorageError(TailorOpsError):
    """Exception for entity store failures; never retried by the core"""
    code = "storage_error"
