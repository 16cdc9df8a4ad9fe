"""Success-or-error container returned across public boundaries."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

from skycache.errors import ErrorRecord

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Holds exactly one of `value` or `error`."""
    value: Optional[T] = None
    error: Optional[ErrorRecord] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ErrorRecord) -> "Result[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value or raise ValueError if this is a failure."""
        if self.error is not None:
            raise ValueError(f"unwrap() on failed result: {self.error}")
        return self.value  # type: ignore[return-value]

    def map(self, fn: Callable[[T], U]) -> "Result[U]":
        if self.error is not None:
            return Result.failure(self.error)
        return Result.success(fn(self.value))  # type: ignore[arg-type]
