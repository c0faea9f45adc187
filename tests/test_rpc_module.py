"""Tests for serving service definitions over HTTP and calling them with credentials."""
from __future__ import annotations

import json
import threading

import httpx
import pytest
from starlette.testclient import TestClient

from callgate.auth.call_credentials import CallCredentials
from callgate.auth.sources import StaticTokenSource
from callgate.core.app import Application
from callgate.core.config import Settings
from callgate.descriptors import MethodDescriptor, ServiceDescriptor
from callgate.rpc.errors import RpcError
from callgate.rpc.handler_registry import HandlerRegistry
from callgate.rpc.protocol import RpcServerHandler
from callgate.rpc.rpc_module import JsonHttpRpcTransport, RpcClient, RpcModule, RpcServer
from callgate.rpc.service_definition import ServerServiceDefinition
from callgate.status import Status, StatusCode, StatusError

GET = MethodDescriptor.unary("employees.Directory", "Get")
FIRE = MethodDescriptor.unary("employees.Directory", "Fire")
DIRECTORY = ServiceDescriptor("employees.Directory", [GET, FIRE])

PING = MethodDescriptor.unary("health.Health", "Ping")
HEALTH = ServiceDescriptor("health.Health", [PING])


async def get_employee(request, metadata):
    if metadata.get("authorization") != "Bearer secret":
        raise StatusError(Status(StatusCode.UNAUTHENTICATED, "bad token"))
    return {"id": request["id"], "name": "Ada"}


def fire_employee(request):
    raise RuntimeError("not allowed")


def ping(request):
    return "pong"


def directory_definition() -> ServerServiceDefinition:
    return (
        ServerServiceDefinition.builder(DIRECTORY)
        .add_method(GET, get_employee)
        .add_method(FIRE, fire_employee)
        .build()
    )


def health_definition() -> ServerServiceDefinition:
    return ServerServiceDefinition.builder(HEALTH).add_method(PING, ping).build()


@pytest.fixture
def app() -> Application:
    return Application().register(RpcModule().server(directory_definition(), health_definition()))


class TestHandlerRegistry:
    def test_lookup_across_services(self):
        registry = HandlerRegistry.from_services(directory_definition(), health_definition())
        assert registry.lookup("employees.Directory/Get").method is GET
        assert registry.lookup("/health.Health/Ping").method is PING
        assert registry.lookup("health.Health/Missing") is None
        assert len(registry.services()) == 2

    def test_duplicate_service(self):
        with pytest.raises(ValueError):
            HandlerRegistry.from_services(health_definition(), health_definition())

    def test_with_services(self):
        registry = HandlerRegistry.from_services(health_definition()).with_services(directory_definition())
        assert registry.lookup("employees.Directory/Fire").method is FIRE


class TestRpcServer:
    @pytest.mark.asyncio
    async def test_unknown_method_is_unimplemented(self):
        server = RpcServer(HandlerRegistry.from_services(health_definition()))
        status, body = await server.dispatch("health.Health/Nope", b"")
        assert status.code is StatusCode.UNIMPLEMENTED
        assert b"UNIMPLEMENTED" in body

    @pytest.mark.asyncio
    async def test_handle_returns_encoded_response(self):
        server = RpcServer(HandlerRegistry.from_services(health_definition()))
        assert await server.handle("health.Health/Ping", b"{}") == b'"pong"'

    @pytest.mark.asyncio
    async def test_handler_exception_is_internal(self):
        server = RpcServer(HandlerRegistry.from_services(directory_definition()))
        status, body = await server.dispatch("employees.Directory/Fire", b"{}")
        assert status.code is StatusCode.INTERNAL
        assert b"not allowed" in body

    @pytest.mark.asyncio
    async def test_undecodable_request(self):
        server = RpcServer(HandlerRegistry.from_services(health_definition()))
        status, _ = await server.dispatch("health.Health/Ping", b"{not json")
        assert status.code is StatusCode.INVALID_ARGUMENT


class TestRpcModule:
    def test_route_uses_configured_path(self):
        app = Application(Settings(rpc_path="/api"))
        app.register(RpcModule().server(health_definition()))
        with TestClient(app.asgi) as client:
            r = client.post("/api/health.Health/Ping", content=b"{}")
        assert r.status_code == 200
        assert r.json() == "pong"
        assert r.headers["callgate-status"] == "OK"

    def test_unimplemented_over_http(self, app):
        with TestClient(app.asgi) as client:
            r = client.post("/rpc/health.Health/Missing", content=b"{}")
        assert r.status_code == 501
        assert r.json()["error"]["code"] == "UNIMPLEMENTED"

    def test_headers_reach_handler(self, app):
        with TestClient(app.asgi) as client:
            ok = client.post(
                "/rpc/employees.Directory/Get",
                json={"id": "42"},
                headers={"Authorization": "Bearer secret"},
            )
            denied = client.post("/rpc/employees.Directory/Get", json={"id": "42"})
        assert ok.json() == {"id": "42", "name": "Ada"}
        assert denied.status_code == 401
        assert denied.json()["error"] == {"code": "UNAUTHENTICATED", "message": "bad token"}


class TestRpcClient:
    @pytest.mark.asyncio
    async def test_call_with_credentials(self, app):
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app.asgi)) as http:
            client = RpcClient(
                "https://employees.internal:443",
                JsonHttpRpcTransport(client=http),
                credentials=CallCredentials(StaticTokenSource("secret")),
            )
            assert await client.call(GET, {"id": "7"}) == {"id": "7", "name": "Ada"}

    @pytest.mark.asyncio
    async def test_wrong_token(self, app):
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app.asgi)) as http:
            client = RpcClient(
                "https://employees.internal",
                JsonHttpRpcTransport(client=http),
                credentials=CallCredentials(StaticTokenSource("wrong")),
            )
            assert await client.call(GET, {"id": "7"}) is None
            with pytest.raises(RpcError) as exc:
                await client.call(GET, {"id": "7"}, raise_on_error=True)
        assert exc.value.code == "UNAUTHENTICATED"

    @pytest.mark.asyncio
    async def test_credential_failure_stops_the_call(self):
        sent = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent.append(request)
            return httpx.Response(200, content=b"{}")

        class Broken:
            def get_request_metadata(self, uri):
                raise OSError("token endpoint down")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = RpcClient(
                "https://employees.internal",
                JsonHttpRpcTransport(client=http),
                credentials=CallCredentials(Broken()),
            )
            with pytest.raises(RpcError) as exc:
                await client.call(GET, {"id": "7"}, raise_on_error=True)
        assert exc.value.code == "UNAUTHENTICATED"
        assert sent == []

    @pytest.mark.asyncio
    async def test_binary_headers_are_sent_base64(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.headers)
            seen["url"] = str(request.url)
            return httpx.Response(200, content=b'"ok"')

        class Source:
            metadata = {"token-bin": ["QUJD"]}

            def get_request_metadata(self, uri):
                return self.metadata

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = RpcClient(
                "https://employees.internal:8443",
                JsonHttpRpcTransport(client=http),
                credentials=CallCredentials(Source()),
            )
            assert await client.call(PING, None) == "ok"
        assert seen["token-bin"] == "QUJD"
        assert seen["url"] == "https://employees.internal:8443/rpc/health.Health/Ping"

    @pytest.mark.asyncio
    async def test_without_credentials(self, app):
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app.asgi)) as http:
            client = RpcClient("http://health.internal", JsonHttpRpcTransport(client=http))
            assert await client.call(PING, {}) == "pong"
            assert await client.call(MethodDescriptor.unary("health.Health", "Nope"), {}) is None


class EchoHandler:
    """Answers every method with its own name and the request body."""

    async def handle(self, method, payload, metadata=None):
        return json.dumps({"method": method, "payload": payload.decode()}).encode()


class TestCustomServerHandler:
    def test_custom_handler_serves_routes(self):
        handler = EchoHandler()
        assert isinstance(handler, RpcServerHandler)
        app = Application().register(RpcModule().server(handler=handler))
        with TestClient(app.asgi) as client:
            r = client.post("/rpc/any.Service/Whatever", content=b"{}")
        assert r.status_code == 200
        assert r.json() == {"method": "any.Service/Whatever", "payload": "{}"}

    def test_services_and_handler_are_exclusive(self):
        module = RpcModule().server(health_definition(), handler=EchoHandler())
        with pytest.raises(ValueError):
            Application().register(module)

    def test_rpc_server_is_a_server_handler(self):
        assert isinstance(RpcServer(HandlerRegistry.from_services(health_definition())), RpcServerHandler)


class TestUndecodableResponse:
    @staticmethod
    def _client(http: httpx.AsyncClient) -> RpcClient:
        return RpcClient("https://health.internal", JsonHttpRpcTransport(client=http))

    @pytest.mark.asyncio
    async def test_returns_none(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>proxy</html>")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            assert await self._client(http).call(PING, {}) is None

    @pytest.mark.asyncio
    async def test_raises_rpc_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>proxy</html>")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(RpcError) as exc:
                await self._client(http).call(PING, {}, raise_on_error=True)
        assert exc.value.code == "TRANSPORT_ERROR"


class TestCredentialExecutor:
    def test_pool_is_sized_from_settings(self):
        app = Application(Settings(executor_workers=3))
        try:
            pool = app.credential_executor
            assert pool is app.credential_executor
            assert pool._max_workers == 3
        finally:
            app.shutdown()

    @pytest.mark.asyncio
    async def test_client_fetches_credentials_on_the_pool(self, app):
        fetch_threads = []

        class Source:
            metadata = {"authorization": ["Bearer secret"]}

            def get_request_metadata(self, uri):
                fetch_threads.append(threading.current_thread().name)
                return self.metadata

        try:
            async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app.asgi)) as http:
                client = RpcClient(
                    "https://employees.internal",
                    JsonHttpRpcTransport(client=http),
                    credentials=CallCredentials(Source()),
                    executor=app.credential_executor,
                )
                assert await client.call(GET, {"id": "1"}) == {"id": "1", "name": "Ada"}
        finally:
            app.shutdown()
        assert fetch_threads[0].startswith("callgate-credentials")
