"""Result-or-empty wrapper for best-effort operations."""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Either a value or an empty result with the reason it is empty."""

    value: Optional[T] = None
    reason: Optional[str] = None

    @classmethod
    def ok(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def empty(cls, reason: str) -> "Outcome[T]":
        return cls(reason=reason)

    @property
    def is_empty(self) -> bool:
        return self.value is None

    def value_or(self, default: T) -> T:
        """Get the value, or the default when the outcome is empty."""
        if self.value is None:
            return default
        return self.value
