"""Streaming statistics source backed by the Docker Engine API."""

import http.client
import json
import logging
import socket
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import Any, BinaryIO, Protocol
from urllib.parse import quote, urlsplit

from cstats.errors import StatsConnectionError, StatsDecodeError

logger = logging.getLogger(__name__)

DEFAULT_DOCKER_HOST = "unix:///var/run/docker.sock"
DEFAULT_TCP_PORT = 2375


class StatsSource(Protocol):
    """Anything that can open a live stats stream for a container."""

    def open(self, name: str) -> AbstractContextManager[Iterator[dict[str, Any]]]:
        """Open the stream; leaving the context closes the connection."""
        ...


class _UnixHTTPConnection(http.client.HTTPConnection):
    """HTTPConnection over a unix domain socket."""

    def __init__(self, socket_path: str, timeout: float | None = None) -> None:
        super().__init__("localhost", timeout=timeout)
        self._socket_path = socket_path

    def connect(self) -> None:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(self.timeout)
        try:
            sock.connect(self._socket_path)
        except OSError:
            sock.close()
            raise
        self.sock = sock


def iter_payloads(stream: BinaryIO) -> Iterator[dict[str, Any]]:
    """
    Decode a newline-delimited JSON stats stream.

    Blank keep-alive lines are skipped. Returns when the remote side closes
    the stream.

    Raises:
        StatsDecodeError: A line is not valid JSON.
        StatsConnectionError: The connection failed mid-stream.
    """
    while True:
        try:
            line = stream.readline()
        except (OSError, http.client.HTTPException) as err:
            raise StatsConnectionError(f"error reading stats stream: {err}") from err
        if not line:
            return
        line = line.strip()
        if not line:
            continue
        try:
            yield json.loads(line)
        except ValueError as err:
            raise StatsDecodeError(f"invalid stats record: {err}") from err


def _error_message(response: http.client.HTTPResponse) -> str:
    """Extract the daemon's error message from a failed response."""
    try:
        body = response.read()
    except (OSError, http.client.HTTPException):
        body = b""
    try:
        message = json.loads(body).get("message")
    except (ValueError, AttributeError):
        message = body.decode("utf-8", "replace").strip()
    return message or f"HTTP {response.status} {response.reason}"


class DockerStatsSource:
    """
    Open ``/containers/<name>/stats`` streams on a Docker daemon.

    Supports ``unix://`` socket hosts and ``tcp://``/``http://`` hosts.
    """

    def __init__(
        self,
        host: str = DEFAULT_DOCKER_HOST,
        api_version: str | None = None,
        timeout: float | None = 10.0,
    ) -> None:
        """
        Initialize the DockerStatsSource.

        Args:
            host: Docker daemon address, e.g. ``unix:///var/run/docker.sock``.
            api_version: Optional API version prefix such as ``1.41``.
            timeout: Connect and response-header timeout (seconds). Reads on
                an established stream never time out.
        """
        parts = urlsplit(host)
        if parts.scheme not in ("unix", "tcp", "http"):
            raise ValueError(f"unsupported Docker host: {host!r}")
        self.host = host
        self.api_version = api_version.lstrip("v") if api_version else None
        self.timeout = timeout
        self._parts = parts

    def _connection(self) -> http.client.HTTPConnection:
        if self._parts.scheme == "unix":
            return _UnixHTTPConnection(self._parts.path, timeout=self.timeout)
        return http.client.HTTPConnection(
            self._parts.hostname or "localhost",
            self._parts.port or DEFAULT_TCP_PORT,
            timeout=self.timeout,
        )

    def stats_path(self, name: str) -> str:
        """Request path for a container's streaming stats."""
        prefix = f"/v{self.api_version}" if self.api_version else ""
        return f"{prefix}/containers/{quote(name, safe='')}/stats?stream=1"

    @contextmanager
    def open(self, name: str) -> Iterator[Iterator[dict[str, Any]]]:
        """Open the stats stream for ``name``; yields an iterator of records."""
        conn = self._connection()
        try:
            try:
                conn.request("GET", self.stats_path(name), headers={"Accept": "application/json"})
                response = conn.getresponse()
            except (OSError, http.client.HTTPException) as err:
                raise StatsConnectionError(
                    f"cannot connect to the Docker daemon at {self.host}: {err}"
                ) from err

            if not 200 <= response.status < 300:
                raise StatsConnectionError(_error_message(response))

            # The stream is long-lived; silence is handled by the tracker's watchdog.
            if conn.sock is not None:
                conn.sock.settimeout(None)
            logger.debug("Opened stats stream for %s on %s", name, self.host)
            yield iter_payloads(response)
        finally:
            conn.close()
