"""
Error types and a small result wrapper.

ParseError is the only exception the core raises on purpose. Anything else
that can go wrong on the way in (corrupted share links, broken store files)
is reported as None / an empty value instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union


T = TypeVar("T")
E = TypeVar("E", bound=Exception)


class ParseErrorKind(str, Enum):
    MISSING_TABLE = "missing table"
    EMPTY_RESULT = "empty result"
    INVALID_DATETIME = "invalid datetime"
    UNKNOWN_FORMAT = "unknown format"


class ParseError(Exception):
    """
    Raised when a source document cannot be turned into timetable events.

    `kind` tells the caller which remedy to suggest: a wrong file
    (MISSING_TABLE, UNKNOWN_FORMAT) or a right file without usable rows
    (EMPTY_RESULT, INVALID_DATETIME).
    """

    def __init__(self, kind: ParseErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __repr__(self) -> str:
        return f"ParseError({self.kind.value!r}, {self.message!r})"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err[E]]
