"""Result type returned from every engine operation"""
from typing import Generic, Optional, TypeVar

from domain.errors import DomainError, ErrorKind

T = TypeVar("T")


class Result(Generic[T]):
    """Either a value (ok) or a DomainError (failure)"""

    __slots__ = ("_value", "_error")

    def __init__(self, value: Optional[T] = None, error: Optional[DomainError] = None):
        self._value = value
        self._error = error

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, error: DomainError) -> "Result[T]":
        return cls(error=error)

    @property
    def is_ok(self) -> bool:
        return self._error is None

    @property
    def value(self) -> T:
        if self._error is not None:
            raise self._error
        return self._value

    @property
    def error(self) -> Optional[DomainError]:
        return self._error

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self._error.kind if self._error else None

    def unwrap(self) -> T:
        """Return the value or raise the carried error"""
        return self.value

    def __repr__(self) -> str:
        if self.is_ok:
            return f"Result.ok({self._value!r})"
        return f"Result.fail({self._error!r})"
