"""Shared fixtures: a small service contract and a recording applier."""
from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from callgate.descriptors import MethodDescriptor, ServiceDescriptor
from callgate.metadata import Metadata
from callgate.status import Status

SERVICE = "pkg.Service"


@pytest.fixture
def get_method() -> MethodDescriptor:
    return MethodDescriptor.unary(SERVICE, "Get")


@pytest.fixture
def list_method() -> MethodDescriptor:
    return MethodDescriptor.unary(SERVICE, "List")


@pytest.fixture
def contract(get_method, list_method) -> ServiceDescriptor:
    return ServiceDescriptor(SERVICE, [get_method, list_method])


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=4)
    yield pool
    pool.shutdown(wait=True)


class RecordingApplier:
    """Records every delivery; wait() blocks until the first one."""

    def __init__(self) -> None:
        self.headers: list[Metadata] = []
        self.failures: list[Status] = []
        self.threads: list[int] = []
        self._done = threading.Event()

    def apply(self, headers: Metadata) -> None:
        self.headers.append(headers)
        self.threads.append(threading.get_ident())
        self._done.set()

    def fail(self, status: Status) -> None:
        self.failures.append(status)
        self.threads.append(threading.get_ident())
        self._done.set()

    def wait(self, timeout: float = 5.0) -> None:
        assert self._done.wait(timeout), "applier was never called"

    @property
    def deliveries(self) -> int:
        return len(self.headers) + len(self.failures)


@pytest.fixture
def applier() -> RecordingApplier:
    return RecordingApplier()


@pytest.fixture
def applier_factory() -> type[RecordingApplier]:
    return RecordingApplier
