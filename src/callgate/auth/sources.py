"""Ready-made credential sources: fixed bearer token and token from the environment."""
from __future__ import annotations

import os
import threading
from types import MappingProxyType
from typing import Mapping, MutableMapping, Sequence

AUTHORIZATION = "authorization"


def bearer_metadata(token: str) -> Mapping[str, Sequence[str]]:
    return MappingProxyType({AUTHORIZATION: (f"Bearer {token}",)})


class StaticTokenSource:
    """Same token for every audience. Returns one mapping object, so headers are encoded once."""

    def __init__(self, token: str) -> None:
        if not token:
            raise ValueError("token must not be empty")
        self._metadata = bearer_metadata(token)

    def get_request_metadata(self, uri: str) -> Mapping[str, Sequence[str]]:
        return self._metadata


class EnvTokenSource:
    """
    Token read from an environment variable on every fetch.
    The returned mapping changes only when the variable's value changes.
    """

    def __init__(self, var: str = "CALLGATE_AUTH_TOKEN", environ: MutableMapping[str, str] | None = None) -> None:
        self.var = var
        self._environ = os.environ if environ is None else environ
        self._lock = threading.Lock()
        self._token: str | None = None
        self._metadata: Mapping[str, Sequence[str]] | None = None

    def get_request_metadata(self, uri: str) -> Mapping[str, Sequence[str]]:
        token = self._environ.get(self.var)
        if not token:
            raise LookupError(f"{self.var} is not set")
        with self._lock:
            if token != self._token or self._metadata is None:
                self._token = token
                self._metadata = bearer_metadata(token)
            return self._metadata
