"""Exceptions raised by cstats."""


class StatsError(Exception):
    """Base class for container statistics errors."""


class StatsConnectionError(StatsError):
    """The stats stream could not be opened or the connection dropped."""


class StatsDecodeError(StatsError):
    """A record on the stats stream could not be decoded."""


class StreamClosedError(StatsError):
    """The remote side ended the stats stream."""

    def __init__(self, message: str = "stream closed") -> None:
        super().__init__(message)


class StatsStartupError(StatsError):
    """
    One or more containers failed before the live display started.

    The message lists every failing container as ``name: reason``,
    comma-separated.
    """

    def __init__(self, failures: list[tuple[str, BaseException]]) -> None:
        self.failures = failures
        super().__init__(", ".join(f"{name}: {err}" for name, err in failures))
