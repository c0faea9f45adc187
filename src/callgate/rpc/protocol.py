"""RPC protocols: call by full method name; transport and serialization — user's choice."""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from callgate.metadata import Metadata


@runtime_checkable
class RpcTransport(Protocol):
    """RPC transport: send request with headers, get response. Raises RpcError on error replies."""

    async def call(self, url: str, method: str, payload: bytes, headers: Metadata) -> bytes:
        ...


@runtime_checkable
class RpcServerHandler(Protocol):
    """Incoming RPC handler: method + body (+ request headers) -> response."""

    async def handle(self, method: str, payload: bytes, metadata: Metadata | None = None) -> bytes:
        ...
