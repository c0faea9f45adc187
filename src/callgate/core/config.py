"""Config from the environment: raw prefixed values and the typed Settings built from them."""
from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Mapping

ENV_PREFIX = "CALLGATE_"


class Config:
    """Helpers for reading prefixed environment variables."""

    @classmethod
    def load_from_env(
        cls,
        prefix: str = ENV_PREFIX,
        environ: Mapping[str, str] | None = None,
        **defaults: Any,
    ) -> dict[str, Any]:
        """Load from os.environ with prefix and defaults. CALLGATE_RPC_PATH=/x -> {"rpc_path": "/x"}."""
        result = dict(defaults)
        env = os.environ if environ is None else environ
        for key, value in env.items():
            if key.startswith(prefix):
                name = key[len(prefix):].lower()
                result[name] = value
        return result


@dataclass(frozen=True)
class Settings:
    """
    Server/client settings. Pass to Application(config=...).
    rpc_path: route prefix for RPC; auth_token_env: variable EnvTokenSource reads;
    executor_workers: thread pool size for credential fetches.
    """

    rpc_path: str = "/rpc"
    auth_token_env: str = "CALLGATE_AUTH_TOKEN"
    executor_workers: int = 4

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX, environ: Mapping[str, str] | None = None) -> Settings:
        values = Config.load_from_env(prefix, environ)
        try:
            workers = int(values.get("executor_workers", cls.executor_workers))
        except ValueError as e:
            raise ValueError(f"{prefix}EXECUTOR_WORKERS must be an integer") from e
        if workers < 1:
            raise ValueError(f"{prefix}EXECUTOR_WORKERS must be positive, got {workers}")
        return cls(
            rpc_path=values.get("rpc_path", cls.rpc_path),
            auth_token_env=values.get("auth_token_env", cls.auth_token_env),
            executor_workers=workers,
        )

    def create_executor(self) -> ThreadPoolExecutor:
        """Thread pool for credential fetches, sized by executor_workers. Caller shuts it down."""
        return ThreadPoolExecutor(max_workers=self.executor_workers, thread_name_prefix="callgate-credentials")
