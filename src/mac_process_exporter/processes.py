"""Process enumeration and ancestor resolution via psutil.

Process handles are plain ``psutil.Process`` objects. Anything that quacks
the same (``name()``, ``parent()``, ``cpu_times()``, ``memory_percent()``)
works too, which is how the tests drive the engine.
"""

from __future__ import annotations

import sys
from typing import Any, Callable, Protocol

import psutil

# Name of the process at the root of the tree (PID 1). Every other process
# descends from it, so it is never a useful group label.
SUPERVISOR_NAMES = {
    "darwin": "launchd",
    "linux": "systemd",
}

# psutil raises its own hierarchy for vanished/protected processes, but a few
# platform calls still leak raw OSError.
PROCESS_READ_ERRORS = (psutil.Error, OSError)


def default_supervisor_name(platform: str | None = None) -> str:
    """Return the root supervisor name for a platform (defaults to this one)."""
    return SUPERVISOR_NAMES.get(platform or sys.platform, "launchd")


class ProcessExporterError(Exception):
    """Base class for collection errors."""


class EnumerationError(ProcessExporterError):
    """The host-wide process listing could not be performed."""


class CollectionTimeoutError(EnumerationError):
    """A collection cycle ran past its deadline."""


class ProcessNameError(ProcessExporterError):
    """A process's own name could not be read."""


class AncestorLookupError(ProcessExporterError):
    """A process's parent chain could not be walked."""


class SampleError(ProcessExporterError):
    """A CPU or memory reading could not be taken."""


class ProcessHandle(Protocol):
    """The subset of ``psutil.Process`` the engine relies on."""

    pid: int

    def name(self) -> str: ...

    def parent(self) -> ProcessHandle | None: ...

    def cpu_times(self) -> Any: ...

    def memory_percent(self) -> float: ...


Enumerator = Callable[[], list[ProcessHandle]]


def list_processes() -> list[ProcessHandle]:
    """List every process visible to the caller.

    Processes that exit while the listing is built are dropped by psutil.

    Raises:
        EnumerationError: If the OS process table cannot be read.
    """
    try:
        return list(psutil.process_iter())
    except PROCESS_READ_ERRORS as e:
        raise EnumerationError(f"Failed to list processes: {e}") from e


def read_name(handle: ProcessHandle) -> str:
    """Return a process's own name.

    Raises:
        ProcessNameError: If the name cannot be read.
    """
    try:
        return handle.name()
    except PROCESS_READ_ERRORS as e:
        raise ProcessNameError(f"Failed to read name of PID {pid_of(handle)}: {e}") from e


def resolve_group_ancestor(
    own_name: str,
    handle: ProcessHandle,
    supervisor_name: str | None = None,
) -> str:
    """Return the session root name for a process.

    Walks up the parent chain until either the tree runs out or the next
    parent is the root supervisor, and returns the last name seen before
    stopping. A process directly under the supervisor resolves to itself, and
    every process beneath a session root resolves to that root regardless of
    depth.

    Raises:
        AncestorLookupError: If any parent or parent name cannot be read, or
            the chain loops back on itself.
    """
    supervisor = supervisor_name or default_supervisor_name()
    return _walk(own_name, handle, supervisor, seen={pid_of(handle)})


def _walk(name: str, current: ProcessHandle, supervisor: str, seen: set[int | None]) -> str:
    while True:
        try:
            parent = current.parent()
        except PROCESS_READ_ERRORS as e:
            raise AncestorLookupError(
                f"Failed to read parent of PID {pid_of(current)}: {e}"
            ) from e

        # Top of the tree with no supervisor above
        if parent is None:
            return name

        try:
            parent_name = parent.name()
        except PROCESS_READ_ERRORS as e:
            raise AncestorLookupError(
                f"Failed to read name of parent PID {pid_of(parent)}: {e}"
            ) from e

        # The supervisor owns everything, so the child below it is the root
        if parent_name == supervisor:
            return name

        parent_pid = pid_of(parent)
        if parent_pid is not None and parent_pid in seen:
            raise AncestorLookupError(f"Parent chain loops at PID {parent_pid}")
        seen.add(parent_pid)

        name, current = parent_name, parent


def pid_of(handle: Any) -> int | None:
    """Return a handle's PID, or None for handles that carry none."""
    return getattr(handle, "pid", None)

