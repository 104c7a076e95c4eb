"""cstats - live resource usage table for running containers."""

import argparse
import logging
import sys
import threading
from collections.abc import Iterable
from dataclasses import replace
from typing import TextIO

from cstats.config import MIN_INTERVAL, StatsConfig
from cstats.display import CLEAR_SCREEN, CURSOR_HOME, HEADER, TabWriter
from cstats.errors import StatsStartupError
from cstats.monitor import ContainerStats
from cstats.source import DockerStatsSource, StatsSource

logger = logging.getLogger(__name__)


class StatsApp:
    """
    Drives one ContainerStats tracker per container and redraws the table.

    Trackers report failure only through ``render()``; a container whose
    stream has died is dropped from the table on the next refresh.
    """

    def __init__(
        self,
        source: StatsSource,
        out: TextIO | None = None,
        config: StatsConfig | None = None,
    ) -> None:
        """
        Initialize the StatsApp.

        Args:
            source: Opens the per-container stats streams.
            out: Terminal to draw on. Defaults to stdout.
            config: Timing settings. Defaults to StatsConfig().
        """
        self._source = source
        self._out = out if out is not None else sys.stdout
        self._config = config or StatsConfig()
        self._stop_event = threading.Event()
        self._trackers: list[ContainerStats] = []

    @property
    def trackers(self) -> list[ContainerStats]:
        """Trackers still shown in the table, in display order."""
        return list(self._trackers)

    def stop(self) -> None:
        """Make run() return after the current refresh."""
        self._stop_event.set()

    def run(self, names: Iterable[str]) -> None:
        """
        Show live stats for ``names`` until every stream has ended.

        Raises:
            ValueError: No container names were given.
            StatsStartupError: Some containers failed before the first
                refresh. Nothing is drawn in that case.
        """
        names = sorted(names)
        if not names:
            raise ValueError("at least one container name is required")

        self._trackers = [
            ContainerStats(name, self._source, watchdog_timeout=self._config.watchdog_timeout)
            for name in names
        ]
        for tracker in self._trackers:
            tracker.start()

        # Let streams for missing containers fail before showing default values.
        self._stop_event.wait(self._config.settle_delay)
        failures = [(t.name, t.error) for t in self._trackers if t.error is not None]
        if failures:
            raise StatsStartupError(failures)

        writer = TabWriter(self._out)
        while not self._stop_event.wait(self._config.refresh_interval):
            self._out.write(CLEAR_SCREEN + CURSOR_HOME)
            writer.write(HEADER)

            to_remove: list[int] = []
            for i, tracker in enumerate(self._trackers):
                if tracker.render(writer) is not None:
                    to_remove.append(i)
            for i in reversed(to_remove):
                logger.debug("Removing %s from the table", self._trackers[i].name)
                del self._trackers[i]

            if not self._trackers:
                return
            writer.flush()


def build_parser() -> argparse.ArgumentParser:
    """Command line parser for cstats."""
    parser = argparse.ArgumentParser(
        prog="cstats",
        description="Display a live stream of one or more containers' resource usage statistics.",
    )
    parser.add_argument("containers", nargs="+", metavar="CONTAINER")
    parser.add_argument("-H", "--host", help="Docker daemon address (default: $DOCKER_HOST or the local socket)")
    parser.add_argument("--api-version", help="Docker API version to request, e.g. 1.41")
    parser.add_argument("--interval", type=float, help="Refresh interval in seconds (default: 0.5)")
    parser.add_argument("--debug", action="store_true", help="Log debug output to stderr")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for the cstats command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = StatsConfig.from_env()
    except ValueError as err:
        parser.error(str(err))
    if args.host:
        config = replace(config, docker_host=args.host)
    if args.api_version:
        config = replace(config, api_version=args.api_version)
    if args.interval is not None:
        config = replace(config, refresh_interval=max(MIN_INTERVAL, args.interval))

    try:
        source = DockerStatsSource(
            config.docker_host,
            api_version=config.api_version,
            timeout=config.connect_timeout,
        )
    except ValueError as err:
        parser.error(str(err))

    app = StatsApp(source, config=config)
    try:
        app.run(args.containers)
    except StatsStartupError as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        app.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
