"""
RpcModule — building block for RPC: server (accept calls) and client (call other services).
Server side dispatches through a HandlerRegistry; client side attaches CallCredentials headers.
"""
from __future__ import annotations

import inspect
import json
from typing import Any, Callable
from urllib.parse import urlsplit

import httpx
import structlog
from starlette.requests import Request
from starlette.responses import Response

from callgate.auth.call_credentials import CallCredentials
from callgate.auth.protocol import CallInfo, Executor
from callgate.core.app import Application
from callgate.core.module import Module
from callgate.descriptors import MethodDescriptor
from callgate.metadata import Metadata
from callgate.rpc.errors import RpcError
from callgate.rpc.handler_registry import HandlerRegistry
from callgate.rpc.protocol import RpcServerHandler, RpcTransport
from callgate.rpc.service_definition import ServerServiceDefinition
from callgate.status import Status, StatusCode, StatusError

logger = structlog.get_logger(__name__)

STATUS_HEADER = "callgate-status"

_HTTP_STATUS = {
    StatusCode.OK: 200,
    StatusCode.INVALID_ARGUMENT: 400,
    StatusCode.UNAUTHENTICATED: 401,
    StatusCode.PERMISSION_DENIED: 403,
    StatusCode.NOT_FOUND: 404,
    StatusCode.UNIMPLEMENTED: 501,
    StatusCode.UNAVAILABLE: 503,
}


def http_status_for(code: StatusCode) -> int:
    return _HTTP_STATUS.get(code, 500)


# Standard error envelope: {"error": {"code": "...", "message": "..."}}
def error_envelope(code: StatusCode, message: str) -> bytes:
    return json.dumps({"error": {"code": code.name, "message": message}}).encode()


def parse_error_envelope(body: bytes) -> RpcError:
    try:
        data = json.loads(body.decode()) if body else None
    except ValueError:
        data = None
    err = data.get("error") if isinstance(data, dict) else None
    if isinstance(err, dict):
        return RpcError(err.get("code", "UNKNOWN"), err.get("message", str(err)))
    if err is not None:
        return RpcError("UNKNOWN", str(err))
    return RpcError("UNKNOWN", body.decode(errors="replace"))


def _accepts_metadata(handler: Callable[..., Any]) -> bool:
    try:
        params = inspect.signature(handler).parameters.values()
    except (TypeError, ValueError):
        return False
    positional = [
        p for p in params
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]
    return len(positional) >= 2 or any(p.kind is inspect.Parameter.VAR_POSITIONAL for p in params)


class RpcServer:
    """
    Dispatches incoming calls by full method name ("pkg.Service/Method").
    Unknown methods answer UNIMPLEMENTED; handlers raise StatusError for other codes.
    """

    def __init__(self, handlers: HandlerRegistry) -> None:
        self.handlers = handlers

    async def handle(self, method: str, payload: bytes, metadata: Metadata | None = None) -> bytes:
        _, body = await self.dispatch(method, payload, metadata)
        return body

    async def dispatch(self, method: str, payload: bytes, metadata: Metadata | None = None) -> tuple[Status, bytes]:
        """Status and body; the body is the error envelope when status is not OK."""
        definition = self.handlers.lookup(method)
        if definition is None:
            logger.info("rpc_method_unimplemented", method=method)
            return self._error(Status(StatusCode.UNIMPLEMENTED, f"Method not found: {method}"))

        descriptor = definition.method
        try:
            request = descriptor.request_codec.decode(payload)
        except Exception as e:
            return self._error(Status(StatusCode.INVALID_ARGUMENT, f"Unable to decode request: {e}"))

        handler = definition.handler
        try:
            if _accepts_metadata(handler):
                result = handler(request, metadata if metadata is not None else Metadata())
            else:
                result = handler(request)
            if hasattr(result, "__await__"):
                result = await result
            body = descriptor.response_codec.encode(result)
        except StatusError as e:
            return self._error(e.status)
        except Exception as e:
            logger.exception("rpc_handler_failed", method=method)
            return self._error(Status(StatusCode.INTERNAL, str(e)))
        return Status(StatusCode.OK), body

    @staticmethod
    def _error(status: Status) -> tuple[Status, bytes]:
        return status, error_envelope(status.code, status.description or status.code.name)


class RpcModule(Module):
    """
    RPC server as object: .server(*services, path=..., handler=...). Register via app.register(rpc).
    Each method is served at POST {path}/{service}/{method}. Without a custom handler,
    the services are dispatched by an RpcServer.
    """

    def __init__(self) -> None:
        self._server_path: str | None = None
        self._services: list[ServerServiceDefinition] = []
        self._server_handler: RpcServerHandler | None = None
        self.rpc_server: RpcServerHandler | None = None

    def server(
        self,
        *services: ServerServiceDefinition,
        path: str | None = None,
        handler: RpcServerHandler | None = None,
    ) -> RpcModule:
        """Services to expose, or a custom handler. path defaults to the application's configured rpc_path."""
        self._services.extend(services)
        if path is not None:
            self._server_path = path.rstrip("/")
        if handler is not None:
            self._server_handler = handler
        return self

    def register_into(self, app: Application) -> None:
        if self._server_handler is not None and self._services:
            raise ValueError("RpcModule takes either services or a custom handler, not both")
        path = self._server_path if self._server_path is not None else app.config.rpc_path.rstrip("/")
        if self._server_handler is not None:
            self.rpc_server = self._server_handler
        else:
            self.rpc_server = RpcServer(HandlerRegistry.from_services(*self._services))
        app.add_route(path + "/{service}/{method}", self._make_endpoint(self.rpc_server), methods=["POST"])

    @staticmethod
    def _make_endpoint(handler: RpcServerHandler) -> Callable:
        async def endpoint(request: Request) -> Response:
            method = f"{request.path_params['service']}/{request.path_params['method']}"
            payload = await request.body()
            metadata = Metadata.from_http_headers(request.headers.items())
            if isinstance(handler, RpcServer):
                status, body = await handler.dispatch(method, payload, metadata)
            else:
                status, body = Status(StatusCode.OK), await handler.handle(method, payload, metadata)
            return Response(
                content=body,
                media_type="application/json",
                status_code=http_status_for(status.code),
                headers={STATUS_HEADER: status.code.name},
            )
        return endpoint


class RpcClient:
    """
    Facade: call(method, request) -> response or None.
    With credentials, every call first obtains headers for the target's authority.
    On error: return None or raise RpcError (see raise_on_error).
    """

    def __init__(
        self,
        target: str,
        transport: RpcTransport,
        credentials: CallCredentials | None = None,
        executor: Executor | None = None,
    ) -> None:
        self._target = target
        self._transport = transport
        self._credentials = credentials
        self._executor = executor

    @property
    def authority(self) -> str | None:
        return urlsplit(self._target).netloc or None

    async def call(
        self,
        method: MethodDescriptor,
        request: Any,
        *,
        raise_on_error: bool = False,
    ) -> Any | None:
        headers = Metadata()
        if self._credentials is not None:
            info = CallInfo(self.authority, method)
            try:
                headers.merge(await self._credentials.request_headers(info, self._executor))
            except StatusError as e:
                if raise_on_error:
                    raise RpcError(e.code.name, str(e.status)) from e
                return None
        try:
            payload = method.request_codec.encode(request)
            result = await self._transport.call(self._target, method.full_method_name, payload, headers)
            return method.response_codec.decode(result)
        except RpcError:
            if raise_on_error:
                raise
            return None
        except Exception as e:
            if raise_on_error:
                raise RpcError("TRANSPORT_ERROR", str(e)) from e
            return None


class JsonHttpRpcTransport:
    """Minimal transport out of the box: HTTP POST to {url}{base_path}/{method}."""

    def __init__(self, base_path: str = "/rpc", client: httpx.AsyncClient | None = None) -> None:
        self._base_path = base_path.rstrip("/")
        self._client = client

    async def call(self, url: str, method: str, payload: bytes, headers: Metadata) -> bytes:
        full_url = url.rstrip("/") + self._base_path + "/" + method
        http_headers = [("content-type", "application/json"), *headers.to_http_headers()]
        if self._client is not None:
            r = await self._client.post(full_url, content=payload, headers=http_headers)
        else:
            async with httpx.AsyncClient() as client:
                r = await client.post(full_url, content=payload, headers=http_headers)
        if r.status_code != 200:
            raise parse_error_envelope(r.content)
        return r.content
