"""
Callgate — RPC service definitions and per-call credentials.
Services are bound to their contract once and frozen; outgoing calls get auth headers from CallCredentials.
"""
from callgate.auth import CallCredentials, CallInfo, EnvTokenSource, StaticTokenSource
from callgate.core import Application, Config, Module, Settings
from callgate.descriptors import JsonCodec, MethodDescriptor, MethodType, ServiceDescriptor
from callgate.metadata import Metadata, to_headers
from callgate.rpc import (
    HandlerRegistry,
    JsonHttpRpcTransport,
    RpcClient,
    RpcError,
    RpcModule,
    RpcServer,
    ServerMethodDefinition,
    ServerServiceDefinition,
)
from callgate.status import Status, StatusCode, StatusError

__all__ = [
    "Application",
    "CallCredentials",
    "CallInfo",
    "Config",
    "EnvTokenSource",
    "HandlerRegistry",
    "JsonCodec",
    "JsonHttpRpcTransport",
    "Metadata",
    "MethodDescriptor",
    "MethodType",
    "Module",
    "RpcClient",
    "RpcError",
    "RpcModule",
    "RpcServer",
    "ServerMethodDefinition",
    "ServerServiceDefinition",
    "ServiceDescriptor",
    "Settings",
    "StaticTokenSource",
    "Status",
    "StatusCode",
    "StatusError",
    "to_headers",
]
