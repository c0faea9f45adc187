"""Call status: canonical codes, status value and the exception that carries it."""
from __future__ import annotations

import enum
from dataclasses import dataclass, replace


class StatusCode(enum.Enum):
    """Canonical status codes (same numbering as gRPC)."""

    OK = 0
    CANCELLED = 1
    UNKNOWN = 2
    INVALID_ARGUMENT = 3
    DEADLINE_EXCEEDED = 4
    NOT_FOUND = 5
    ALREADY_EXISTS = 6
    PERMISSION_DENIED = 7
    RESOURCE_EXHAUSTED = 8
    FAILED_PRECONDITION = 9
    ABORTED = 10
    OUT_OF_RANGE = 11
    UNIMPLEMENTED = 12
    INTERNAL = 13
    UNAVAILABLE = 14
    DATA_LOSS = 15
    UNAUTHENTICATED = 16


@dataclass(frozen=True)
class Status:
    """
    Outcome of a call: code, optional description and optional cause.
    Immutable; with_* return copies.
    """

    code: StatusCode
    description: str | None = None
    cause: BaseException | None = None

    @classmethod
    def of(cls, code: StatusCode) -> Status:
        return cls(code)

    @property
    def is_ok(self) -> bool:
        return self.code is StatusCode.OK

    def with_description(self, description: str | None) -> Status:
        return replace(self, description=description)

    def with_cause(self, cause: BaseException | None) -> Status:
        return replace(self, cause=cause)

    def as_error(self) -> StatusError:
        return StatusError(self)

    def __str__(self) -> str:
        text = self.code.name
        if self.description:
            text += f": {self.description}"
        if self.cause is not None:
            text += f" (caused by {self.cause!r})"
        return text


class StatusError(Exception):
    """Raise from a handler to answer with a specific status."""

    def __init__(self, status: Status) -> None:
        self.status = status
        super().__init__(str(status))

    @property
    def code(self) -> StatusCode:
        return self.status.code
