"""Module protocol: what app.register() accepts."""
from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from callgate.core.app import Application


@runtime_checkable
class Module(Protocol):
    """A unit of wiring (e.g. RpcModule). Configure it first, then hand it to Application.register."""

    def register_into(self, app: Application) -> None:
        """Add routes to app; may read app.config."""
        ...
