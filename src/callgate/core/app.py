"""Application — composed from modules via app.register(module). Served as a Starlette ASGI app."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable

from starlette.applications import Starlette
from starlette.routing import Route
from starlette.types import Receive, Scope, Send

from callgate.core.config import Settings
from callgate.core.module import Module


class Application:
    """
    Application. Composed from modules via register(module).
    The ASGI app is built on first use; run it with any ASGI server.
    """

    def __init__(self, config: Settings | None = None) -> None:
        self.config = config if config is not None else Settings()
        self._modules: list[Module] = []
        self._routes: list[Route] = []
        self._asgi: Starlette | None = None
        self._credential_executor: ThreadPoolExecutor | None = None

    def register(self, module: Module) -> Application:
        """Register a module (RpcModule, etc.). Returns self for chaining."""
        module.register_into(self)
        self._modules.append(module)
        return self

    def add_route(self, path: str, endpoint: Callable[..., Any], methods: list[str] | None = None) -> None:
        """Add an HTTP route. endpoint: async (request) -> response."""
        if methods is None:
            methods = ["GET"]
        self._routes.append(Route(path, endpoint, methods=methods))
        self._asgi = None

    @property
    def routes(self) -> list[Route]:
        return list(self._routes)

    @property
    def credential_executor(self) -> ThreadPoolExecutor:
        """Pool for CallCredentials fetches (pass to RpcClient), created on first use from config."""
        if self._credential_executor is None:
            self._credential_executor = self.config.create_executor()
        return self._credential_executor

    def shutdown(self, wait: bool = True) -> None:
        """Release the credential pool, if one was created."""
        if self._credential_executor is not None:
            self._credential_executor.shutdown(wait=wait)
            self._credential_executor = None

    @property
    def asgi(self) -> Starlette:
        if self._asgi is None:
            self._asgi = Starlette(routes=list(self._routes))
        return self._asgi

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.asgi(scope, receive, send)
