"""Shared test fixtures for mac-process-exporter."""

import logging
from collections import namedtuple
from contextlib import ExitStack
from pathlib import Path
from typing import Iterator
from unittest.mock import patch

import psutil
import pytest
import structlog

from mac_process_exporter.config import Config

SUPERVISOR = "launchd"

CpuTimes = namedtuple("CpuTimes", ["user", "system"])


class FakeProcess:
    """Stand-in for psutil.Process with a settable parent chain.

    ``fail`` names the reads that raise: any of "name", "parent",
    "cpu_times", "memory_percent".
    """

    def __init__(
        self,
        name: str,
        pid: int,
        parent: "FakeProcess | None" = None,
        user: float = 0.0,
        system: float = 0.0,
        mem: float = 0.0,
        fail: tuple[str, ...] = (),
    ):
        self.pid = pid
        self._name = name
        self._parent = parent
        self._times = CpuTimes(user, system)
        self._mem = mem
        self.fail = set(fail)

    def name(self) -> str:
        if "name" in self.fail:
            raise psutil.NoSuchProcess(self.pid)
        return self._name

    def parent(self) -> "FakeProcess | None":
        if "parent" in self.fail:
            raise psutil.AccessDenied(self.pid)
        return self._parent

    def cpu_times(self) -> CpuTimes:
        if "cpu_times" in self.fail:
            raise psutil.AccessDenied(self.pid)
        return self._times

    def memory_percent(self) -> float:
        if "memory_percent" in self.fail:
            raise psutil.ZombieProcess(self.pid)
        return self._mem

    def __repr__(self) -> str:
        return f"FakeProcess({self._name!r}, pid={self.pid})"


def make_tree() -> dict[str, FakeProcess]:
    """Build launchd -> Terminal -> bash -> node, plus a second shell tree.

    Second tree: launchd -> iTerm2 -> bash.
    """
    launchd = FakeProcess(SUPERVISOR, 1)
    terminal = FakeProcess("Terminal", 100, parent=launchd, user=10.0, system=2.0, mem=1.5)
    bash = FakeProcess("bash", 200, parent=terminal, user=1.0, system=0.5, mem=0.25)
    node = FakeProcess("node", 300, parent=bash, user=30.0, system=4.0, mem=6.0)
    iterm = FakeProcess("iTerm2", 400, parent=launchd, user=5.0, system=1.0, mem=2.0)
    iterm_bash = FakeProcess("bash", 500, parent=iterm, user=0.75, system=0.25, mem=0.5)
    return {
        "launchd": launchd,
        "Terminal": terminal,
        "bash": bash,
        "node": node,
        "iTerm2": iterm,
        "iterm_bash": iterm_bash,
    }


@pytest.fixture
def tree() -> dict[str, FakeProcess]:
    """A small process tree rooted at the supervisor."""
    return make_tree()


def _patch_config_paths(stack: ExitStack, base_path: Path) -> None:
    """Point every Config path property at base_path."""
    # fmt: off
    stack.enter_context(patch.object(
        Config, "config_dir",
        new_callable=lambda: property(lambda self: base_path / "config")
    ))
    stack.enter_context(patch.object(
        Config, "state_dir",
        new_callable=lambda: property(lambda self: base_path / "state")
    ))
    # fmt: on


@pytest.fixture
def patched_config_paths(tmp_path: Path) -> Iterator[Path]:
    """Fixture that patches all Config path properties to use tmp_path."""
    with ExitStack() as stack:
        _patch_config_paths(stack, tmp_path)
        yield tmp_path


@pytest.fixture
def restore_logging() -> Iterator[None]:
    """Undo global logging changes made by logging.configure()."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()
