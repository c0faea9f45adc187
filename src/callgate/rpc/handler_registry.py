"""HandlerRegistry — all services a server exposes, looked up by full method name."""
from __future__ import annotations

from types import MappingProxyType
from typing import Any

from callgate.rpc.service_definition import ServerMethodDefinition, ServerServiceDefinition


class HandlerRegistry:
    """Immutable union of service definitions. One service name may appear once."""

    def __init__(self, services: dict[str, ServerServiceDefinition]) -> None:
        self._services = MappingProxyType(dict(services))
        methods: dict[str, ServerMethodDefinition[Any, Any]] = {}
        for service in self._services.values():
            for definition in service.all_methods():
                methods[definition.full_method_name] = definition
        self._methods = MappingProxyType(methods)

    @classmethod
    def from_services(cls, *services: ServerServiceDefinition) -> HandlerRegistry:
        by_name: dict[str, ServerServiceDefinition] = {}
        for service in services:
            if service.service_name in by_name:
                raise ValueError(f"Service already registered: {service.service_name}")
            by_name[service.service_name] = service
        return cls(by_name)

    def with_services(self, *services: ServerServiceDefinition) -> HandlerRegistry:
        """New registry with extra services added."""
        return HandlerRegistry.from_services(*self._services.values(), *services)

    def services(self) -> list[ServerServiceDefinition]:
        return list(self._services.values())

    def lookup(self, full_method_name: str) -> ServerMethodDefinition[Any, Any] | None:
        return self._methods.get(full_method_name.lstrip("/"))
