"""Error taxonomy for engine operations.

Every error is a precondition failure raised before any state is touched,
so catching one means the engine is exactly as it was before the call.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_STATE = "INVALID_STATE"


class EngineError(Exception):
    """Base class for rejected operations."""

    kind: ErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.kind.value, "detail": self.message}


class Unauthorized(EngineError):
    kind = ErrorKind.UNAUTHORIZED


class NotFound(EngineError, LookupError):
    kind = ErrorKind.NOT_FOUND


class InvalidInput(EngineError, ValueError):
    kind = ErrorKind.INVALID_INPUT


class InvalidState(EngineError):
    kind = ErrorKind.INVALID_STATE
