"""
ServerServiceDefinition — handlers bound to a service contract.
Built once via ServerServiceDefinition.builder(descriptor).add_method(...).build();
frozen afterwards, so lookups need no locking.
"""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Generic, Mapping, TypeVar

import structlog

from callgate.descriptors import MethodDescriptor, ServiceDescriptor, extract_full_service_name
from callgate.rpc.errors import (
    ContractMismatch,
    DescriptorIdentityMismatch,
    DuplicateBinding,
    MissingBinding,
    UnknownBinding,
)

logger = structlog.get_logger(__name__)

ReqT = TypeVar("ReqT")
RespT = TypeVar("RespT")

# handler(request) or handler(request, metadata); may return an awaitable.
ServerCallHandler = Callable[..., Any]


@dataclass(frozen=True, eq=False)
class ServerMethodDefinition(Generic[ReqT, RespT]):
    """A method descriptor and the handler that serves it."""

    method: MethodDescriptor
    handler: ServerCallHandler

    @classmethod
    def create(cls, method: MethodDescriptor, handler: ServerCallHandler) -> ServerMethodDefinition[Any, Any]:
        if method is None:
            raise TypeError("method must not be None")
        if handler is None:
            raise TypeError("handler must not be None")
        return cls(method, handler)

    @property
    def full_method_name(self) -> str:
        return self.method.full_method_name

    def with_handler(self, handler: ServerCallHandler) -> ServerMethodDefinition[ReqT, RespT]:
        """Same method bound to another handler (e.g. wrapped by an interceptor)."""
        return ServerMethodDefinition.create(self.method, handler)


class ServerServiceDefinition:
    """Immutable name -> ServerMethodDefinition map for one service."""

    def __init__(
        self,
        service_descriptor: ServiceDescriptor,
        methods: Mapping[str, ServerMethodDefinition[Any, Any]],
    ) -> None:
        self._service_descriptor = service_descriptor
        self._methods = MappingProxyType(dict(methods))

    @staticmethod
    def builder(service_descriptor: ServiceDescriptor) -> ServerServiceDefinitionBuilder:
        return ServerServiceDefinitionBuilder(service_descriptor)

    @property
    def service_descriptor(self) -> ServiceDescriptor:
        return self._service_descriptor

    @property
    def service_name(self) -> str:
        return self._service_descriptor.name

    def all_methods(self) -> frozenset[ServerMethodDefinition[Any, Any]]:
        return frozenset(self._methods.values())

    def lookup(self, full_method_name: str) -> ServerMethodDefinition[Any, Any] | None:
        """Method by fully qualified name without leading slash, e.g. "pkg.Foo/Bar". None if absent."""
        return self._methods.get(full_method_name)

    def __repr__(self) -> str:
        return f"ServerServiceDefinition({self.service_name!r}, methods={sorted(self._methods)})"


class ServerServiceDefinitionBuilder:
    """
    Accumulates bindings for one service. add_method checks the service prefix and duplicates;
    build() checks the bindings against the descriptor exactly.
    """

    def __init__(self, service_descriptor: ServiceDescriptor) -> None:
        self._service_descriptor = service_descriptor
        # insertion order is the order UnknownBinding reports extras in
        self._methods: dict[str, ServerMethodDefinition[Any, Any]] = {}

    def add_method(
        self,
        method: MethodDescriptor | ServerMethodDefinition[Any, Any],
        handler: ServerCallHandler | None = None,
    ) -> ServerServiceDefinitionBuilder:
        """Bind handler to method (or add a ready ServerMethodDefinition). Returns self for chaining."""
        if isinstance(method, ServerMethodDefinition):
            definition = method
        else:
            definition = ServerMethodDefinition.create(method, handler)
        name = definition.full_method_name
        service_name = self._service_descriptor.name
        if extract_full_service_name(name) != service_name:
            raise ContractMismatch(service_name, name)
        if name in self._methods:
            raise DuplicateBinding(name)
        self._methods[name] = definition
        return self

    def build(self) -> ServerServiceDefinition:
        scratch = dict(self._methods)
        for descriptor_method in self._service_descriptor.methods:
            name = descriptor_method.full_method_name
            removed = scratch.pop(name, None)
            if removed is None:
                raise MissingBinding(name)
            if removed.method is not descriptor_method:
                raise DescriptorIdentityMismatch(name)
        if scratch:
            raise UnknownBinding(next(iter(scratch)))
        definition = ServerServiceDefinition(self._service_descriptor, self._methods)
        logger.debug(
            "service_definition_built",
            service=self._service_descriptor.name,
            methods=len(self._methods),
        )
        return definition
