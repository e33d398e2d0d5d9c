"""Explicit success/failure values for collaborator reads."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    message: str
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return False


Result = Union[Success[T], Failure]

__all__ = ["Failure", "Result", "Success"]
