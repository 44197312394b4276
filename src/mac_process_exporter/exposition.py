"""Prometheus exposition of per-group snapshots.

A SnapshotMetrics instance is registered on a dedicated CollectorRegistry
(never the prometheus_client global one). Each scrape of that registry runs
one collection cycle and renders it as two metric families.
"""

import threading
from collections.abc import Iterator
from dataclasses import dataclass

import structlog
from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric

from mac_process_exporter.collector import Snapshot, SnapshotCollector
from mac_process_exporter.processes import EnumerationError

log = structlog.get_logger()

CPU_METRIC = "mac_process_cpu_usage_total"
MEM_METRIC = "mac_process_mem_usage"
LABELS = ("name", "parent")


def _metric_families() -> tuple[CounterMetricFamily, GaugeMetricFamily]:
    cpu = CounterMetricFamily(
        CPU_METRIC,
        "Total user and system CPU seconds of every process in the group.",
        labels=LABELS,
    )
    mem = GaugeMetricFamily(
        MEM_METRIC,
        "Summed memory percent of every process in the group.",
        labels=LABELS,
    )
    return cpu, mem


def snapshot_to_metrics(snapshot: Snapshot) -> list[Metric]:
    """Render a snapshot as the CPU counter and memory gauge families."""
    cpu, mem = _metric_families()
    for group in snapshot:
        labels = [group.name, group.parent]
        cpu.add_metric(labels, group.cpu_seconds)
        mem.add_metric(labels, group.mem_percent)
    return [cpu, mem]


@dataclass
class ScrapeStats:
    """Scrape counters for heartbeat logging. Not exported as metrics."""

    scrapes: int = 0
    failures: int = 0
    last_groups: int = 0
    last_elapsed_ms: int = 0


class SnapshotMetrics:
    """Custom collector that runs a SnapshotCollector cycle per scrape.

    An EnumerationError is re-raised so the HTTP layer answers with a server
    error instead of an empty, healthy-looking page.
    """

    def __init__(self, collector: SnapshotCollector):
        self.collector = collector
        self._stats = ScrapeStats()
        self._lock = threading.Lock()

    @property
    def stats(self) -> ScrapeStats:
        """Copy of the scrape counters so far."""
        with self._lock:
            return ScrapeStats(**vars(self._stats))

    def describe(self) -> list[Metric]:
        """Describe metric families without running a collection cycle."""
        return list(_metric_families())

    def collect(self) -> Iterator[Metric]:
        try:
            snapshot = self.collector.collect()
        except EnumerationError as e:
            with self._lock:
                self._stats.scrapes += 1
                self._stats.failures += 1
            log.error("scrape_failed", error=str(e), error_type=type(e).__name__)
            raise

        with self._lock:
            self._stats.scrapes += 1
            self._stats.last_groups = len(snapshot)
            self._stats.last_elapsed_ms = snapshot.elapsed_ms
        yield from snapshot_to_metrics(snapshot)


def build_registry(metrics: SnapshotMetrics) -> CollectorRegistry:
    """Create a fresh registry holding only ``metrics``."""
    registry = CollectorRegistry(auto_describe=False)
    registry.register(metrics)
    return registry


def render(snapshot: Snapshot) -> bytes:
    """Render a single snapshot in the Prometheus text format."""
    return generate_latest(_StaticSnapshot(snapshot))


class _StaticSnapshot:
    """Registry-like wrapper so generate_latest can render a fixed snapshot."""

    def __init__(self, snapshot: Snapshot):
        self.snapshot = snapshot

    def collect(self) -> list[Metric]:
        return snapshot_to_metrics(self.snapshot)
