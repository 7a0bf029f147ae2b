"""Typed errors raised by the engine"""
from typing import Optional

from core.enums import ErrorCode, PermissionLevel


class EngineError(Exception):
    """Base error carrying a caller-facing error code"""

    error_code: ErrorCode = ErrorCode.INVALID_INPUT

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def __str__(self):
        # Format used for logging
        return f"[{self.error_code.value}] {self.message}"


class NotFoundError(EngineError):
    """Document, proposal, section or assignment does not exist"""
    error_code = ErrorCode.NOT_FOUND


class ForbiddenError(EngineError):
    """Permission check failed"""
    error_code = ErrorCode.FORBIDDEN

    def __init__(self, required: PermissionLevel, actual: PermissionLevel,
                 message: Optional[str] = None):
        self.required = required
        self.actual = actual
        super().__init__(
            message or f"This action requires {required.name} permission. You have {actual.name}."
        )


class InvalidInputError(EngineError):
    """Malformed permission value or missing required field"""
    error_code = ErrorCode.INVALID_INPUT


class UpstreamUnavailableError(EngineError):
    """Embedding or completion endpoint failed or timed out"""
    error_code = ErrorCode.UPSTREAM_UNAVAILABLE


class UnparseableError(EngineError):
    """Model output could not be sanitized or structured as expected"""
    error_code = ErrorCode.UNPARSEABLE
