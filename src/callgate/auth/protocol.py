"""Credential protocols: where raw metadata comes from, where work runs, where results go."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol, Sequence, runtime_checkable

from callgate.descriptors import MethodDescriptor
from callgate.metadata import Metadata
from callgate.status import Status


@runtime_checkable
class CredentialSource(Protocol):
    """
    Raw request metadata for an audience URI (key -> list of values).
    May block on network I/O and may raise. User supplies implementation (OAuth, service account, etc.).
    Returning the same mapping object again tells the caller nothing changed.
    """

    def get_request_metadata(self, uri: str) -> Mapping[str, Sequence[str]] | None:
        ...


@runtime_checkable
class Executor(Protocol):
    """Runs work somewhere other than the calling thread. concurrent.futures executors qualify."""

    def submit(self, fn: Callable[[], Any]) -> Any:
        ...


@runtime_checkable
class MetadataApplier(Protocol):
    """Continuation for one call: exactly one of apply / fail is invoked."""

    def apply(self, headers: Metadata) -> None:
        ...

    def fail(self, status: Status) -> None:
        ...


@dataclass(frozen=True)
class CallInfo:
    """What the credentials need to know about an outgoing call."""

    authority: str | None
    method: MethodDescriptor | str

    @property
    def full_method_name(self) -> str:
        if isinstance(self.method, MethodDescriptor):
            return self.method.full_method_name
        return self.method
