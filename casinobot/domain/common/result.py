"""Tagged success / failure values returned to the command layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


class ErrorKind(str, Enum):
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    INVALID_TARGET = "INVALID_TARGET"
    COOLDOWN_ACTIVE = "COOLDOWN_ACTIVE"
    MISSING_COMMUNITY = "MISSING_COMMUNITY"
    SESSION_ACTIVE = "SESSION_ACTIVE"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    NOT_SESSION_OWNER = "NOT_SESSION_OWNER"
    GAME_FINISHED = "GAME_FINISHED"
    ILLEGAL_ACTION = "ILLEGAL_ACTION"


@dataclass(frozen=True, slots=True)
class Failure:
    kind: ErrorKind
    message: str
    context: dict[str, Any] = field(default_factory=dict)
    cause: Optional[BaseException] = field(default=None, repr=False, compare=False)


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    error: E

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err[E]]
