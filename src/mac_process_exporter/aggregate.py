"""Per-group aggregation of process CPU time and memory usage."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import NamedTuple

import structlog

from mac_process_exporter.processes import (
    PROCESS_READ_ERRORS,
    ProcessHandle,
    SampleError,
    pid_of,
)

log = structlog.get_logger()


class GroupKey(NamedTuple):
    """Identity of a logical process group."""

    name: str  # The process's own name
    parent: str  # Resolved session root name


@dataclass(frozen=True)
class GroupAggregate:
    """Running totals for one group within a single collection cycle."""

    key: GroupKey
    cpu_seconds: float = 0.0  # Sum of user + system time of every member
    mem_percent: float = 0.0  # Sum of every member's memory percent

    @property
    def name(self) -> str:
        return self.key.name

    @property
    def parent(self) -> str:
        return self.key.parent

    def __add__(self, other: GroupAggregate) -> GroupAggregate:
        if other.key != self.key:
            raise ValueError(f"Cannot add aggregates for {self.key} and {other.key}")
        return replace(
            self,
            cpu_seconds=self.cpu_seconds + other.cpu_seconds,
            mem_percent=self.mem_percent + other.mem_percent,
        )


@dataclass(frozen=True)
class FieldSample:
    """Outcome of reading one field: a value, or the error that prevented it."""

    value: float = 0.0
    error: SampleError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ProcessSample:
    """CPU and memory readings for one process, each read independently."""

    cpu: FieldSample
    mem: FieldSample


GroupMapping = dict[GroupKey, GroupAggregate]


def read_cpu_seconds(handle: ProcessHandle) -> FieldSample:
    """Read user + system CPU seconds accumulated since process start."""
    try:
        times = handle.cpu_times()
    except PROCESS_READ_ERRORS as e:
        return FieldSample(error=SampleError(f"cpu_times: {e}"))
    # Other fields (children_*, iowait) are platform-dependent; only these two count
    return FieldSample(value=float(times.user + times.system))


def read_memory_percent(handle: ProcessHandle) -> FieldSample:
    """Read the process's share of physical memory, in percent."""
    try:
        return FieldSample(value=float(handle.memory_percent()))
    except PROCESS_READ_ERRORS as e:
        return FieldSample(error=SampleError(f"memory_percent: {e}"))


def sample_process(handle: ProcessHandle) -> ProcessSample:
    """Take both readings for a process. Never raises for a vanished process."""
    return ProcessSample(cpu=read_cpu_seconds(handle), mem=read_memory_percent(handle))


def fold(mapping: GroupMapping, key: GroupKey, sample: ProcessSample) -> GroupMapping:
    """Add whichever readings succeeded to the group's totals.

    The group is created even when both readings failed, so a process that
    was seen always shows up with at least a zero-valued group.
    """
    current = mapping.get(key) or GroupAggregate(key=key)
    mapping[key] = replace(
        current,
        cpu_seconds=current.cpu_seconds + (sample.cpu.value if sample.cpu.ok else 0.0),
        mem_percent=current.mem_percent + (sample.mem.value if sample.mem.ok else 0.0),
    )
    return mapping


def accumulate(
    mapping: GroupMapping,
    own_name: str,
    ancestor_name: str,
    handle: ProcessHandle,
    sample: ProcessSample | None = None,
) -> GroupMapping:
    """Sample a process and fold it into ``mapping`` under (own_name, ancestor_name).

    Failed readings are logged and skipped individually. Pass ``sample`` to
    fold readings that were already taken.
    """
    if sample is None:
        sample = sample_process(handle)
    for field, reading in (("cpu", sample.cpu), ("mem", sample.mem)):
        if not reading.ok:
            log.debug(
                "sample_failed",
                field=field,
                name=own_name,
                pid=pid_of(handle),
                error=str(reading.error),
            )
    return fold(mapping, GroupKey(own_name, ancestor_name), sample)


def merge(target: GroupMapping, partial: GroupMapping) -> GroupMapping:
    """Sum a partial mapping into ``target``, key by key."""
    for key, aggregate in partial.items():
        existing = target.get(key)
        target[key] = aggregate if existing is None else existing + aggregate
    return target
