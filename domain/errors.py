"""Domain Errors - typed failures returned by the engine"""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    INVALID_STATE = "INVALID_STATE"
    CONFLICT = "CONFLICT"
    VALIDATION_ERROR = "VALIDATION_ERROR"


class DomainError(Exception):
    """Business rule violation with a kind, a human message and an optional machine code"""

    def __init__(self, kind: ErrorKind, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.code = code

    def __repr__(self) -> str:
        return f"DomainError({self.kind.value}, {self.message!r}, code={self.code!r})"

    # ==================== FACTORY METHODS ====================
    @classmethod
    def not_found(cls, entity: str, code: Optional[str] = None) -> "DomainError":
        code = code or f"{entity.upper().replace(' ', '_')}_NOT_FOUND"
        return cls(ErrorKind.NOT_FOUND, f"{entity} not found", code)

    @classmethod
    def invalid_state(cls, message: str, code: Optional[str] = None) -> "DomainError":
        return cls(ErrorKind.INVALID_STATE, message, code or "INVALID_STATE")

    @classmethod
    def conflict(cls, message: str, code: Optional[str] = None) -> "DomainError":
        return cls(ErrorKind.CONFLICT, message, code or "CONFLICT")

    @classmethod
    def validation(cls, message: str, code: Optional[str] = None) -> "DomainError":
        return cls(ErrorKind.VALIDATION_ERROR, message, code or "VALIDATION_ERROR")
