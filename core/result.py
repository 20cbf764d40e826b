"""
core/result.py -- Tagged success/failure union for expected failure paths.

Pattern: Result type. Service and store methods return Ok(value) or
Err(error) instead of raising for outcomes the caller is expected to handle
(bad credentials, unknown token, storage unavailable). Exceptions stay
reserved for programmer errors -- unwrap() on an Err raises.

Usage:
    result = store.find_by_opaque_value(token)
    if isinstance(result, Err):
        return result
    record = result.value

Both variants are frozen dataclasses so they can be matched structurally:
    match result:
        case Ok(value): ...
        case Err(error): ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self):
        raise RuntimeError(f"unwrap() called on Err: {self.error!r}")


Result = Union[Ok[T], Err[E]]
