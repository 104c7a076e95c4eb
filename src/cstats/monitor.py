"""Per-container statistics collection for cstats."""

import logging
import threading
from collections.abc import Iterator
from queue import Empty, Queue
from typing import Any, TextIO

from cstats.display import format_row
from cstats.errors import StreamClosedError
from cstats.models import ContainerSnapshot, StatsSample
from cstats.source import StatsSource

logger = logging.getLogger(__name__)

DEFAULT_WATCHDOG_TIMEOUT = 2.0


def calculate_cpu_percent(previous_cpu: int, previous_system: int, sample: StatsSample) -> float:
    """
    CPU usage of a container between two samples, as a percentage.

    100% means one fully busy CPU, so the result ranges up to
    ``online_cpus * 100``. Returns 0.0 when either counter did not advance
    (first sample noise, counter reset, non-monotonic clocks).
    """
    cpu_delta = float(sample.cpu_total - previous_cpu)
    system_delta = float(sample.system_total - previous_system)
    if system_delta > 0.0 and cpu_delta > 0.0:
        return (cpu_delta / system_delta) * sample.online_cpus * 100.0
    return 0.0


class ContainerStats:
    """
    Tracks the live resource usage of one container.

    ``collect()`` owns the stream and is the only writer of the snapshot.
    ``render()`` may be called from any thread. Once the stream fails the
    tracker records the error and stops for good.
    """

    def __init__(
        self,
        name: str,
        source: StatsSource,
        watchdog_timeout: float = DEFAULT_WATCHDOG_TIMEOUT,
    ) -> None:
        """
        Initialize the ContainerStats tracker.

        Args:
            name: Container name or ID.
            source: Where to open the stats stream.
            watchdog_timeout: Seconds without a sample before the volatile
                metrics are zeroed. Default 2.0s.
        """
        self._name = name
        self._source = source
        self._watchdog_timeout = watchdog_timeout
        self._lock = threading.Lock()
        self._snapshot = ContainerSnapshot.empty(name)
        self._error: BaseException | None = None
        self._thread: threading.Thread | None = None

    @property
    def name(self) -> str:
        """Container name."""
        return self._name

    @property
    def error(self) -> BaseException | None:
        """Terminal error, or None while the stream is alive."""
        with self._lock:
            return self._error

    @property
    def is_running(self) -> bool:
        """Check if the collection thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def snapshot(self) -> ContainerSnapshot:
        """Latest consistent snapshot."""
        with self._lock:
            return self._snapshot

    def start(self) -> None:
        """Run collect() on a daemon thread."""
        if self.is_running:
            return

        self._thread = threading.Thread(
            target=self.collect,
            daemon=True,
            name=f"ContainerStats-{self._name}",
        )
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        """Wait for the collection thread to finish."""
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def collect(self) -> None:
        """
        Stream samples into the snapshot until the stream fails.

        Decoding happens on a helper thread that reports each result through
        a single-slot queue. This loop waits on that queue with the watchdog
        timeout; when it expires the volatile metrics are zeroed but the
        container stays alive.
        """
        try:
            with self._source.open(self._name) as stream:
                updates: Queue[BaseException | None] = Queue(maxsize=1)
                decoder = threading.Thread(
                    target=self._decode_loop,
                    args=(stream, updates),
                    daemon=True,
                    name=f"ContainerStats-{self._name}-decode",
                )
                decoder.start()

                while True:
                    try:
                        err = updates.get(timeout=self._watchdog_timeout)
                    except Empty:
                        with self._lock:
                            self._snapshot = self._snapshot.stale()
                        continue
                    if err is not None:
                        self._fail(err)
                        return
        except Exception as err:
            self._fail(err)

    def _decode_loop(
        self,
        stream: Iterator[dict[str, Any]],
        updates: "Queue[BaseException | None]",
    ) -> None:
        """Decode samples in stream order and publish each as a full snapshot."""
        previous_cpu = 0
        previous_system = 0
        first = True
        try:
            for payload in stream:
                sample = StatsSample.from_payload(payload)
                cpu_percent = 0.0
                if not first:
                    cpu_percent = calculate_cpu_percent(previous_cpu, previous_system, sample)
                first = False

                snapshot = ContainerSnapshot.from_sample(self._name, sample, cpu_percent)
                with self._lock:
                    self._snapshot = snapshot

                previous_cpu = sample.cpu_total
                previous_system = sample.system_total
                updates.put(None)
        except Exception as err:
            updates.put(err)
        else:
            updates.put(StreamClosedError())

    def _fail(self, err: BaseException) -> None:
        logger.debug("Stats stream for %s ended: %s", self._name, err)
        with self._lock:
            if self._error is None:
                self._error = err

    def render(self, out: TextIO) -> BaseException | None:
        """
        Write the container's row to ``out``.

        Returns the terminal error instead of writing when the stream has
        failed, so the caller can drop this container.
        """
        with self._lock:
            if self._error is not None:
                return self._error
            snapshot = self._snapshot
        out.write(format_row(snapshot))
        return None
