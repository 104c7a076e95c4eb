"""Data models for cstats."""

from dataclasses import dataclass, replace
from typing import Any

from cstats.errors import StatsDecodeError


def _lookup(section: Any, path: tuple[str, ...]) -> Any:
    value = section
    for key in path:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _counter(section: Any, *path: str) -> int:
    """Read a numeric counter from nested payload dicts, 0 if absent."""
    value = _lookup(section, path)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise StatsDecodeError(f"invalid value for {'.'.join(path)}: {value!r}")
    return int(value)


@dataclass(slots=True, frozen=True)
class StatsSample:
    """One decoded record from a container's stats stream."""

    cpu_total: int  # Cumulative CPU time used by the container (ns)
    system_total: int  # Cumulative CPU time of the whole host (ns)
    online_cpus: int
    memory_usage: int  # Bytes
    memory_limit: int  # Bytes
    network_rx: int  # Bytes
    network_tx: int  # Bytes

    @classmethod
    def from_payload(cls, payload: Any) -> "StatsSample":
        """
        Build a sample from a decoded stats record.

        Network counters come from ``network`` on older daemons and are
        summed over every interface in ``networks`` on newer ones.
        """
        if not isinstance(payload, dict):
            raise StatsDecodeError(f"expected a JSON object, got {type(payload).__name__}")

        cpu_stats = payload.get("cpu_stats")
        percpu = _lookup(cpu_stats, ("cpu_usage", "percpu_usage"))
        if isinstance(percpu, list) and percpu:
            online_cpus = len(percpu)
        else:
            online_cpus = _counter(cpu_stats, "online_cpus")

        networks = payload.get("networks")
        if isinstance(networks, dict):
            interfaces = list(networks.values())
        else:
            interfaces = [payload.get("network")]

        return cls(
            cpu_total=_counter(cpu_stats, "cpu_usage", "total_usage"),
            system_total=_counter(cpu_stats, "system_cpu_usage"),
            online_cpus=online_cpus,
            memory_usage=_counter(payload, "memory_stats", "usage"),
            memory_limit=_counter(payload, "memory_stats", "limit"),
            network_rx=sum(_counter(iface, "rx_bytes") for iface in interfaces),
            network_tx=sum(_counter(iface, "tx_bytes") for iface in interfaces),
        )

    @property
    def memory_percent(self) -> float:
        """Memory usage as a percentage of the limit (0.0 without a limit)."""
        if self.memory_limit <= 0:
            return 0.0
        return self.memory_usage / self.memory_limit * 100.0


@dataclass(slots=True, frozen=True)
class ContainerSnapshot:
    """Immutable view of one container's latest metrics."""

    name: str
    cpu_percentage: float = 0.0
    memory: float = 0.0  # Bytes
    memory_limit: float = 0.0  # Bytes
    memory_percentage: float = 0.0
    network_rx: float = 0.0  # Bytes, cumulative
    network_tx: float = 0.0  # Bytes, cumulative

    @classmethod
    def empty(cls, name: str) -> "ContainerSnapshot":
        """Snapshot shown before the first sample arrives."""
        return cls(name=name)

    @classmethod
    def from_sample(cls, name: str, sample: StatsSample, cpu_percentage: float) -> "ContainerSnapshot":
        """Snapshot for a freshly decoded sample."""
        return cls(
            name=name,
            cpu_percentage=cpu_percentage,
            memory=float(sample.memory_usage),
            memory_limit=float(sample.memory_limit),
            memory_percentage=sample.memory_percent,
            network_rx=float(sample.network_rx),
            network_tx=float(sample.network_tx),
        )

    def stale(self) -> "ContainerSnapshot":
        """Copy with the volatile fields zeroed, used when updates stop arriving."""
        return replace(self, cpu_percentage=0.0, memory=0.0, memory_percentage=0.0)
