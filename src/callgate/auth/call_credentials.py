"""
CallCredentials — turns a CredentialSource into request headers for each outgoing call.
Fetches run in the caller's executor; encoded headers are cached while the source
keeps returning the same metadata object.
"""
from __future__ import annotations

import asyncio
import re
import threading
from typing import Any, Callable, Mapping, Sequence
from urllib.parse import quote, urlsplit

import structlog

from callgate.auth.protocol import CallInfo, CredentialSource, Executor, MetadataApplier
from callgate.descriptors import extract_full_service_name
from callgate.metadata import Metadata, to_headers
from callgate.status import Status, StatusCode, StatusError

logger = structlog.get_logger(__name__)

SCHEME = "https"
DEFAULT_PORT = 443

# RFC 3986 authority characters (userinfo, host incl. IP literal, port)
_AUTHORITY_RE = re.compile(r"^[A-Za-z0-9\-._~%!$&'()*+,;=:@\[\]]+$")

_UNSET: Any = object()


def _unauthenticated(description: str, cause: BaseException | None = None) -> StatusError:
    return Status(StatusCode.UNAUTHENTICATED, description, cause).as_error()


def service_uri(authority: str | None, full_method_name: str) -> str:
    """
    Audience for a call: https://<authority>/<service>. The default port is dropped,
    other ports are kept. Raises StatusError(UNAUTHENTICATED) for missing or malformed input.
    """
    if not authority:
        raise _unauthenticated("Channel has no authority")
    service_name = extract_full_service_name(full_method_name)
    if not service_name:
        raise _unauthenticated(f"Method name has no service part: {full_method_name!r}")
    if not _AUTHORITY_RE.match(authority):
        raise _unauthenticated(
            "Unable to construct service URI for auth",
            ValueError(f"Illegal character in authority: {authority!r}"),
        )
    try:
        parts = urlsplit(f"{SCHEME}://{authority}")
        port = parts.port
    except ValueError as e:
        raise _unauthenticated("Unable to construct service URI for auth", e) from e
    netloc = parts.netloc
    if netloc != authority or not parts.hostname:
        raise _unauthenticated(
            "Unable to construct service URI for auth",
            ValueError(f"Malformed authority: {authority!r}"),
        )
    if port == DEFAULT_PORT or netloc.endswith(":"):
        netloc = netloc[: netloc.rfind(":")]
    return f"{SCHEME}://{netloc}/{quote(service_name)}"


class CallCredentials:
    """
    Credential metadata injector. One instance per credential configuration;
    its header cache is shared by every call made through it.
    """

    def __init__(self, source: CredentialSource) -> None:
        if source is None:
            raise TypeError("source must not be None")
        self.source = source
        self._lock = threading.Lock()
        self._last_metadata: Mapping[str, Sequence[str]] | None = _UNSET
        self._last_headers = Metadata()

    def apply_request_metadata(
        self,
        info: CallInfo,
        executor: Executor,
        applier: MetadataApplier,
    ) -> None:
        """
        Schedule header computation for one call on executor. Never raises:
        the outcome (headers or UNAUTHENTICATED status) always goes to applier, exactly once.
        Headers may be shared with other calls; treat them as read-only.
        """
        try:
            executor.submit(lambda: self._run(info, applier))
        except Exception as e:
            logger.warning("credential_fetch_not_scheduled", error=str(e))
            applier.fail(Status(StatusCode.UNAUTHENTICATED, "Unable to schedule credential fetch", e))

    async def request_headers(self, info: CallInfo, executor: Executor | None = None) -> Metadata:
        """Async form: headers, or StatusError(UNAUTHENTICATED). Defaults to the loop's thread pool."""
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Metadata] = loop.create_future()
        self.apply_request_metadata(info, executor or _LoopExecutor(loop), _FutureApplier(loop, future))
        return await future

    def _run(self, info: CallInfo, applier: MetadataApplier) -> None:
        try:
            uri = service_uri(info.authority, info.full_method_name)
        except StatusError as e:
            applier.fail(e.status)
            return
        try:
            metadata = self.source.get_request_metadata(uri)
            headers = self._headers_for(metadata, uri)
        except Exception as e:
            logger.warning("credential_fetch_failed", audience=uri, error=str(e))
            applier.fail(Status(StatusCode.UNAUTHENTICATED, cause=e))
            return
        applier.apply(headers)

    def _headers_for(self, metadata: Mapping[str, Sequence[str]] | None, uri: str) -> Metadata:
        # only the compare-and-replace is locked; the fetch above runs unlocked
        with self._lock:
            if metadata is not self._last_metadata:
                headers = to_headers(metadata)
                self._last_metadata = metadata
                self._last_headers = headers
                logger.debug("credential_headers_refreshed", audience=uri, entries=len(headers))
            return self._last_headers


class _LoopExecutor:
    """Executor backed by the event loop's default thread pool."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def submit(self, fn: Callable[[], Any]) -> Any:
        return self._loop.run_in_executor(None, fn)


class _FutureApplier:
    """Resolves an asyncio future from any thread."""

    def __init__(self, loop: asyncio.AbstractEventLoop, future: asyncio.Future[Metadata]) -> None:
        self._loop = loop
        self._future = future

    def apply(self, headers: Metadata) -> None:
        self._loop.call_soon_threadsafe(self._settle, headers, None)

    def fail(self, status: Status) -> None:
        self._loop.call_soon_threadsafe(self._settle, None, status.as_error())

    def _settle(self, headers: Metadata | None, error: StatusError | None) -> None:
        if self._future.done():
            return
        if error is not None:
            self._future.set_exception(error)
        else:
            self._future.set_result(headers)
