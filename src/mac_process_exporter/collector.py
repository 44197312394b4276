"""Snapshot collection: enumerate, resolve, sample and aggregate in one cycle."""

import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, fields, replace
from datetime import datetime

import structlog

from mac_process_exporter.aggregate import (
    GroupAggregate,
    GroupKey,
    GroupMapping,
    accumulate,
    merge,
    sample_process,
)
from mac_process_exporter.processes import (
    AncestorLookupError,
    CollectionTimeoutError,
    Enumerator,
    ProcessHandle,
    ProcessNameError,
    default_supervisor_name,
    list_processes,
    pid_of,
    read_name,
    resolve_group_ancestor,
)

log = structlog.get_logger()


@dataclass(frozen=True)
class CycleStats:
    """Diagnostic counters for one collection cycle."""

    processes: int = 0  # Handles returned by enumeration
    sampled: int = 0  # Processes folded into a group
    name_failures: int = 0
    ancestor_failures: int = 0
    cpu_failures: int = 0
    mem_failures: int = 0

    @property
    def skipped(self) -> int:
        """Processes dropped entirely (no group contribution)."""
        return self.name_failures + self.ancestor_failures

    def add(self, other: "CycleStats") -> "CycleStats":
        """Return these counters plus ``other``'s (``processes`` is kept as is)."""
        return replace(
            self,
            **{
                f.name: getattr(self, f.name) + getattr(other, f.name)
                for f in fields(self)
                if f.name != "processes"
            },
        )


@dataclass(frozen=True)
class Snapshot:
    """Immutable result of one collection cycle."""

    timestamp: datetime
    elapsed_ms: int
    groups: tuple[GroupAggregate, ...]
    stats: CycleStats

    def __len__(self) -> int:
        return len(self.groups)

    def __iter__(self):
        return iter(self.groups)

    def get(self, name: str, parent: str) -> GroupAggregate | None:
        """Look up a group by its labels."""
        key = GroupKey(name, parent)
        return next((g for g in self.groups if g.key == key), None)


def collect_batch(
    handles: list[ProcessHandle],
    supervisor_name: str,
) -> tuple[GroupMapping, CycleStats]:
    """Resolve and sample a batch of processes into a private mapping.

    Every per-process failure is counted and skipped; nothing here raises for
    a process that vanished or is protected.
    """
    mapping: GroupMapping = {}
    counts: Counter[str] = Counter()

    for handle in handles:
        try:
            name = read_name(handle)
        except ProcessNameError as e:
            counts["name_failures"] += 1
            log.debug("process_name_failed", pid=pid_of(handle), error=str(e))
            continue

        try:
            parent = resolve_group_ancestor(name, handle, supervisor_name)
        except AncestorLookupError as e:
            counts["ancestor_failures"] += 1
            log.debug("ancestor_lookup_failed", pid=pid_of(handle), name=name, error=str(e))
            continue

        sample = sample_process(handle)
        if not sample.cpu.ok:
            counts["cpu_failures"] += 1
        if not sample.mem.ok:
            counts["mem_failures"] += 1
        accumulate(mapping, name, parent, handle, sample=sample)
        counts["sampled"] += 1

    return mapping, CycleStats(**counts)


class SnapshotCollector:
    """Builds a fresh Snapshot of per-group usage on every call to collect().

    Each cycle gets its own worker pool and mappings, so overlapping scrapes
    never share state. Per-process work is split into batches; each batch
    aggregates privately and the partial mappings are summed at the end.
    """

    def __init__(
        self,
        supervisor_name: str | None = None,
        max_workers: int = 8,
        batch_size: int = 64,
        timeout: float = 10.0,
        enumerator: Enumerator = list_processes,
        log_groups: bool = False,
    ):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {timeout}")

        self.supervisor_name = supervisor_name or default_supervisor_name()
        self.max_workers = max_workers
        self.batch_size = batch_size
        self.timeout = timeout
        self.log_groups = log_groups
        self._enumerate = enumerator

    def collect(self) -> Snapshot:
        """Run one full collection cycle.

        Raises:
            EnumerationError: If the process listing fails.
            CollectionTimeoutError: If the cycle runs past ``timeout`` seconds.
        """
        start = time.monotonic()
        deadline = start + self.timeout
        executor = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="snapshot-collector"
        )
        try:
            handles = self._list_within(executor, deadline)
            batches = [
                handles[i : i + self.batch_size] for i in range(0, len(handles), self.batch_size)
            ]
            futures = [
                executor.submit(collect_batch, batch, self.supervisor_name) for batch in batches
            ]
            _, pending = wait(futures, timeout=max(0.0, deadline - time.monotonic()))
            if pending:
                raise CollectionTimeoutError(
                    f"Collection exceeded {self.timeout}s "
                    f"({len(pending)}/{len(futures)} batches unfinished)"
                )

            mapping: GroupMapping = {}
            stats = CycleStats(processes=len(handles))
            for future in futures:
                partial, partial_stats = future.result()
                merge(mapping, partial)
                stats = stats.add(partial_stats)
        finally:
            # Don't block the scrape on stragglers after a timeout
            executor.shutdown(wait=False, cancel_futures=True)

        elapsed_ms = int((time.monotonic() - start) * 1000)
        snapshot = Snapshot(
            timestamp=datetime.now(),
            elapsed_ms=elapsed_ms,
            groups=tuple(mapping.values()),
            stats=stats,
        )

        log.debug(
            "collection_complete",
            processes=stats.processes,
            groups=len(snapshot),
            skipped=stats.skipped,
            cpu_failures=stats.cpu_failures,
            mem_failures=stats.mem_failures,
            elapsed_ms=elapsed_ms,
        )
        if self.log_groups:
            for group in snapshot:
                log.debug(
                    "group_totals",
                    name=group.name,
                    parent=group.parent,
                    cpu_seconds=group.cpu_seconds,
                    mem_percent=group.mem_percent,
                )
        return snapshot

    def _list_within(self, executor: ThreadPoolExecutor, deadline: float) -> list[ProcessHandle]:
        future = executor.submit(self._enumerate)
        try:
            return future.result(timeout=max(0.0, deadline - time.monotonic()))
        except FutureTimeoutError as e:
            raise CollectionTimeoutError(
                f"Process enumeration exceeded {self.timeout}s"
            ) from e
