"""RPC errors: call failures on the client and service wiring defects on the server."""
from __future__ import annotations


class RpcError(Exception):
    """RPC call failed: server returned error envelope, credentials failed or transport failed."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


class ServiceDefinitionError(ValueError):
    """Bindings do not match the service contract. Raised once, at start-up."""


class ContractMismatch(ServiceDefinitionError):
    def __init__(self, service_name: str, full_method_name: str) -> None:
        self.service_name = service_name
        self.full_method_name = full_method_name
        super().__init__(
            f"Service name mismatch. Expected service name: {service_name!r}. "
            f"Actual method name: {full_method_name!r}."
        )


class DuplicateBinding(ServiceDefinitionError):
    def __init__(self, full_method_name: str) -> None:
        self.full_method_name = full_method_name
        super().__init__(f"Method by same name already registered: {full_method_name}")


class MissingBinding(ServiceDefinitionError):
    def __init__(self, full_method_name: str) -> None:
        self.full_method_name = full_method_name
        super().__init__(f"No method bound for descriptor entry {full_method_name}")


class DescriptorIdentityMismatch(ServiceDefinitionError):
    def __init__(self, full_method_name: str) -> None:
        self.full_method_name = full_method_name
        super().__init__(
            f"Bound method for {full_method_name} not same instance as method in service descriptor"
        )


class UnknownBinding(ServiceDefinitionError):
    def __init__(self, full_method_name: str) -> None:
        self.full_method_name = full_method_name
        super().__init__(f"No entry in descriptor matching bound method {full_method_name}")
