"""Tests for the Docker Engine API stats source."""

import io
import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from cstats.errors import StatsConnectionError, StatsDecodeError
from cstats.source import DockerStatsSource, iter_payloads


class BrokenStream:
    """File-like object whose reads fail like a dropped socket."""

    def readline(self) -> bytes:
        raise ConnectionResetError("connection reset by peer")


class TestIterPayloads:
    """Tests for newline-delimited JSON decoding."""

    def test_decodes_records_until_eof(self):
        """Test each line decodes to one record and EOF ends iteration."""
        stream = io.BytesIO(b'{"read": 1}\n\n{"read": 2}\n')
        assert list(iter_payloads(stream)) == [{"read": 1}, {"read": 2}]

    def test_malformed_record(self):
        """Test invalid JSON raises StatsDecodeError after earlier records."""
        records = iter_payloads(io.BytesIO(b'{"read": 1}\n{"read": \n'))
        assert next(records) == {"read": 1}
        with pytest.raises(StatsDecodeError):
            next(records)

    def test_read_error(self):
        """Test a socket error mid-stream raises StatsConnectionError."""
        with pytest.raises(StatsConnectionError, match="connection reset"):
            next(iter_payloads(BrokenStream()))


class TestDockerStatsSource:
    """Tests for DockerStatsSource."""

    def test_default_host(self):
        """Test the local Docker socket is the default host."""
        assert DockerStatsSource().host == "unix:///var/run/docker.sock"

    def test_unsupported_host(self):
        """Test unknown schemes are rejected."""
        with pytest.raises(ValueError):
            DockerStatsSource("ftp://example.com")

    def test_stats_path(self):
        """Test the request path, with and without an API version."""
        assert DockerStatsSource().stats_path("web") == "/containers/web/stats?stream=1"
        versioned = DockerStatsSource(api_version="v1.41")
        assert versioned.stats_path("web") == "/v1.41/containers/web/stats?stream=1"

    def test_unix_socket_not_found(self, tmp_path):
        """Test a missing daemon socket is a connection error."""
        source = DockerStatsSource(f"unix://{tmp_path}/missing.sock", timeout=1.0)
        with pytest.raises(StatsConnectionError, match="cannot connect"):
            with source.open("web"):
                pass


@pytest.fixture
def docker_api():
    """A minimal HTTP server speaking the stats endpoint."""
    records = [
        {"memory_stats": {"usage": 1, "limit": 10}},
        {"memory_stats": {"usage": 2, "limit": 10}},
    ]
    requests: list[str] = []

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            requests.append(self.path)
            if self.path.startswith("/containers/web/"):
                self.send_response(200)
                self.send_header("Content-Type", "application/json")
                self.end_headers()
                for record in records:
                    self.wfile.write(json.dumps(record).encode() + b"\n")
            else:
                body = json.dumps({"message": "No such container: ghost"}).encode()
                self.send_response(404)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

        def log_message(self, format, *args):
            pass

    server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        host, port = server.server_address[:2]
        yield f"tcp://{host}:{port}", records, requests
    finally:
        server.shutdown()
        server.server_close()


class TestDockerStatsSourceHttp:
    """Tests against a local HTTP server."""

    def test_streams_records(self, docker_api):
        """Test records are streamed until the server closes the connection."""
        host, records, requests = docker_api
        source = DockerStatsSource(host, timeout=5.0)

        with source.open("web") as stream:
            assert list(stream) == records

        assert requests == ["/containers/web/stats?stream=1"]

    def test_missing_container(self, docker_api):
        """Test the daemon's error message is surfaced."""
        host, _, _ = docker_api
        source = DockerStatsSource(host, timeout=5.0)

        with pytest.raises(StatsConnectionError) as excinfo:
            with source.open("ghost"):
                pass

        assert str(excinfo.value) == "No such container: ghost"
