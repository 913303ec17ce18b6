"""Result<T> pattern: domain and application functions return this instead of raising for normal flow."""
from __future__ import annotations
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

# Closed set of failure codes; the API layer maps them to HTTP statuses.
NOT_FOUND = "NOT_FOUND"
INVALID = "INVALID"
FORBIDDEN = "FORBIDDEN"
CONFLICT = "CONFLICT"

FAILURE_CODES = {NOT_FOUND, INVALID, FORBIDDEN, CONFLICT}


class Result(Generic[T]):
    def __init__(
        self,
        is_success: bool,
        value: Optional[T] = None,
        error: Optional[str] = None,
        code: Optional[str] = None,
    ):
        self.is_success = is_success
        self.value = value
        self.error = error
        self.code = code

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(is_success=True, value=value)

    @classmethod
    def fail(cls, error: str, code: str = INVALID) -> "Result[T]":
        if code not in FAILURE_CODES:
            raise ValueError(f"Unknown failure code '{code}'")
        return cls(is_success=False, error=error, code=code)

    @classmethod
    def not_found(cls, error: str) -> "Result[T]":
        return cls.fail(error, NOT_FOUND)

    @classmethod
    def forbidden(cls, error: str) -> "Result[T]":
        return cls.fail(error, FORBIDDEN)

    def propagate(self) -> "Result":
        """Re-wrap a failure so it can be returned from a function with a different T."""
        return Result.fail(self.error or "", self.code or INVALID)

    def __repr__(self) -> str:
        if self.is_success:
            return f"Result.ok({self.value!r})"
        return f"Result.fail({self.error!r}, code={self.code!r})"
