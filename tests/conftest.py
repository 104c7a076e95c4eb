"""Shared fixtures: an in-memory stats source with scriptable streams."""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from queue import Queue
from typing import Any

import pytest


class FakeStream:
    """A stats stream fed by the test. Iteration blocks until data is pushed."""

    _END = object()

    def __init__(self) -> None:
        self._items: Queue[Any] = Queue()
        self.closed = threading.Event()

    def push(self, payload: Any) -> None:
        """Deliver one decoded record."""
        self._items.put(payload)

    def fail(self, err: BaseException) -> None:
        """Make the next read raise ``err``."""
        self._items.put(err)

    def end(self) -> None:
        """Close the stream from the remote side."""
        self._items.put(self._END)

    def __iter__(self) -> Iterator[Any]:
        while True:
            item = self._items.get()
            if item is self._END:
                return
            if isinstance(item, BaseException):
                raise item
            yield item


class FakeStatsSource:
    """StatsSource double keyed by container name."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._streams: dict[str, FakeStream] = {}
        self.open_errors: dict[str, BaseException] = {}
        self.opened: list[str] = []

    def stream(self, name: str) -> FakeStream:
        with self._lock:
            return self._streams.setdefault(name, FakeStream())

    @contextmanager
    def open(self, name: str) -> Iterator[Iterator[Any]]:
        with self._lock:
            self.opened.append(name)
        if name in self.open_errors:
            raise self.open_errors[name]
        stream = self.stream(name)
        try:
            yield iter(stream)
        finally:
            stream.closed.set()

    def end_all(self) -> None:
        with self._lock:
            streams = list(self._streams.values())
        for stream in streams:
            stream.end()


def build_payload(
    cpu_total: int = 0,
    system_total: int = 0,
    cpus: int = 2,
    mem_usage: int = 0,
    mem_limit: int = 0,
    rx: int = 0,
    tx: int = 0,
) -> dict[str, Any]:
    """A stats record shaped like the Docker Engine API output."""
    return {
        "read": "2015-01-08T22:57:31.547920715Z",
        "network": {"rx_bytes": rx, "tx_bytes": tx, "rx_packets": 1, "tx_packets": 1},
        "cpu_stats": {
            "cpu_usage": {
                "total_usage": cpu_total,
                "percpu_usage": [cpu_total // max(cpus, 1)] * cpus,
                "usage_in_kernelmode": 0,
                "usage_in_usermode": cpu_total,
            },
            "system_cpu_usage": system_total,
        },
        "memory_stats": {"usage": mem_usage, "max_usage": mem_usage, "limit": mem_limit},
    }


@pytest.fixture
def make_payload():
    """Factory for Docker-shaped stats records."""
    return build_payload


@pytest.fixture
def source():
    """Fake stats source; open streams are ended on teardown."""
    fake = FakeStatsSource()
    yield fake
    fake.end_all()
