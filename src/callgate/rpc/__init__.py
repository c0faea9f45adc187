from callgate.rpc.errors import (
    ContractMismatch,
    DescriptorIdentityMismatch,
    DuplicateBinding,
    MissingBinding,
    RpcError,
    ServiceDefinitionError,
    UnknownBinding,
)
from callgate.rpc.handler_registry import HandlerRegistry
from callgate.rpc.protocol import RpcServerHandler, RpcTransport
from callgate.rpc.rpc_module import JsonHttpRpcTransport, RpcClient, RpcModule, RpcServer
from callgate.rpc.service_definition import (
    ServerMethodDefinition,
    ServerServiceDefinition,
    ServerServiceDefinitionBuilder,
)

__all__ = [
    "ContractMismatch",
    "DescriptorIdentityMismatch",
    "DuplicateBinding",
    "HandlerRegistry",
    "JsonHttpRpcTransport",
    "MissingBinding",
    "RpcClient",
    "RpcError",
    "RpcModule",
    "RpcServer",
    "RpcServerHandler",
    "RpcTransport",
    "ServerMethodDefinition",
    "ServerServiceDefinition",
    "ServerServiceDefinitionBuilder",
    "ServiceDefinitionError",
    "UnknownBinding",
]
