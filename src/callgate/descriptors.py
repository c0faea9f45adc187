"""
Method and service descriptors: the contract a service declares.
A method is named "<service>/<method>"; codecs turn request/response objects into bytes.
"""
from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol, runtime_checkable

SEPARATOR = "/"


@runtime_checkable
class Codec(Protocol):
    """Serialization for one message type. User implements (JSON, protobuf, msgpack)."""

    def encode(self, value: Any) -> bytes:
        ...

    def decode(self, payload: bytes) -> Any:
        ...


class JsonCodec:
    """Default codec: JSON, UTF-8. Empty payload decodes to None."""

    def encode(self, value: Any) -> bytes:
        return json.dumps(value).encode()

    def decode(self, payload: bytes) -> Any:
        if not payload:
            return None
        return json.loads(payload.decode())


JSON = JsonCodec()


class MethodType(enum.Enum):
    UNARY = "unary"
    CLIENT_STREAMING = "client_streaming"
    SERVER_STREAMING = "server_streaming"
    BIDI_STREAMING = "bidi_streaming"
    UNKNOWN = "unknown"


def generate_full_method_name(service_name: str, method_name: str) -> str:
    return f"{service_name}{SEPARATOR}{method_name}"


def extract_full_service_name(full_method_name: str) -> str | None:
    """Service part of "<service>/<method>" (text before the first '/'); None without a separator."""
    index = full_method_name.find(SEPARATOR)
    if index == -1:
        return None
    return full_method_name[:index]


@dataclass(frozen=True)
class MethodDescriptor:
    """
    One RPC method. Equality looks at name and type only; codecs are ignored,
    so two descriptors may be equal yet serialize differently.
    """

    full_method_name: str
    method_type: MethodType = MethodType.UNARY
    request_codec: Codec = field(default=JSON, compare=False, repr=False)
    response_codec: Codec = field(default=JSON, compare=False, repr=False)

    def __post_init__(self) -> None:
        if not self.full_method_name:
            raise ValueError("full_method_name must not be empty")

    @classmethod
    def unary(cls, service_name: str, method_name: str, **codecs: Codec) -> MethodDescriptor:
        return cls(generate_full_method_name(service_name, method_name), MethodType.UNARY, **codecs)

    @property
    def service_name(self) -> str | None:
        return extract_full_service_name(self.full_method_name)

    @property
    def method_name(self) -> str:
        return self.full_method_name.split(SEPARATOR, 1)[-1]


@dataclass(frozen=True)
class ServiceDescriptor:
    """Service contract: name and ordered methods. Every method must belong to the service."""

    name: str
    methods: tuple[MethodDescriptor, ...] = ()

    def __init__(self, name: str, methods: Iterable[MethodDescriptor] = ()) -> None:
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "methods", tuple(methods))
        seen: set[str] = set()
        for method in self.methods:
            if method.service_name != name:
                raise ValueError(
                    f"Method {method.full_method_name!r} does not belong to service {name!r}"
                )
            if method.full_method_name in seen:
                raise ValueError(f"Method {method.full_method_name!r} declared twice in {name!r}")
            seen.add(method.full_method_name)

    def method(self, method_name: str) -> MethodDescriptor | None:
        """Contract's own descriptor for a short method name (e.g. "Get")."""
        full_name = generate_full_method_name(self.name, method_name)
        for method in self.methods:
            if method.full_method_name == full_name:
                return method
        return None
