"""Centralized logging: Rich console status lines plus structlog JSON file.

This module provides:
1. Icon vocabulary (Icon class namespace)
2. Core console functions (log, info, error)
3. Domain-specific helpers (exporter_listening, heartbeat, scrape_failed, etc.)
4. Structlog configuration (configure)

Console output uses Rich markup for colors. JSON file output via structlog
remains separate (machine-parseable, no colors).
"""

from __future__ import annotations

import logging
import logging.handlers
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from rich.console import Console

if TYPE_CHECKING:
    from mac_process_exporter.config import Config

# Rich console for colorful human-readable output
_console = Console(highlight=False, stderr=True)


# ─────────────────────────────────────────────────────────────────────────────
# Icons
# ─────────────────────────────────────────────────────────────────────────────


class Icon:
    """Icon vocabulary for console output."""

    OK = "[bold green]✓[/]"
    FAIL = "[bold red]✗[/]"
    WAIT = "⏳"
    HEARTBEAT = "[magenta]♡[/]"
    SIGNAL = "⚡"
    LISTENING = "[green]⬤[/]"


_LEVEL_STYLES = {
    "info": "[bright_blue]\\[info][/]",
    "error": "[bold red]\\[err][/] ",
}


# ─────────────────────────────────────────────────────────────────────────────
# Core Functions
# ─────────────────────────────────────────────────────────────────────────────


def log(level: str, msg: str, icon: str = "") -> None:
    """Print a log message with timestamp and level.

    Args:
        level: Log level (info, error)
        msg: Message to print (can include Rich markup)
        icon: Optional icon to show after level (e.g., Icon.OK)
    """
    ts = datetime.now().strftime("%H:%M:%S")
    lvl = _LEVEL_STYLES.get(level, f"[{level}]")
    icon_part = f" {icon}" if icon else ""
    _console.print(f"[dim]{ts}[/] {lvl}{icon_part} {msg}")


def info(msg: str, icon: str = "") -> None:
    log("info", msg, icon)


def error(msg: str, icon: str = "") -> None:
    log("error", msg, icon)


# ─────────────────────────────────────────────────────────────────────────────
# Domain Helpers
# ─────────────────────────────────────────────────────────────────────────────


def version_info(name: str, version: str) -> None:
    """Log version info."""
    info(f"[bold cyan]{name}[/] v{version}")


def collection_summary(supervisor: str, workers: int, batch_size: int, timeout: float) -> None:
    """Log collection settings."""
    info(
        f"Collection: supervisor=[cyan]{supervisor}[/], workers=[cyan]{workers}[/], "
        f"batch=[cyan]{batch_size}[/], timeout=[cyan]{timeout}s[/]"
    )


def exporter_listening(host: str, port: int) -> None:
    """Log HTTP listener ready."""
    info(f"Serving metrics on [cyan]http://{host}:{port}/metrics[/]", Icon.LISTENING)


def exporter_stopping() -> None:
    info("Exporter stopping...", Icon.WAIT)


def exporter_stopped() -> None:
    info("Exporter stopped", Icon.OK)


def signal_received(name: str) -> None:
    info(f"Received [bold]{name}[/]", Icon.SIGNAL)


def heartbeat(scrapes: int, failures: int, groups: int, elapsed_ms: int) -> None:
    """Log periodic heartbeat stats."""
    fail_part = f"[red]{failures} failed[/]" if failures else "[dim]0 failed[/]"
    info(
        f"[cyan]{scrapes}[/] scrapes, {fail_part}, "
        f"[dim]{groups} groups, last cycle {elapsed_ms}ms[/]",
        Icon.HEARTBEAT,
    )


def scrape_failed(error_msg: str) -> None:
    """Log a failed collection cycle."""
    error(f"Scrape failed: {error_msg}", Icon.FAIL)


# ─────────────────────────────────────────────────────────────────────────────
# Structlog Configuration
# ─────────────────────────────────────────────────────────────────────────────


def _add_source(source: str) -> structlog.types.Processor:
    """Create a processor that adds a source field to log events."""

    def processor(
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        event_dict["source"] = source
        return event_dict

    return processor


def configure(config: Config, console: bool = False, level: int = logging.INFO) -> None:
    """Configure structlog with JSON file output and optional console output.

    File output uses JSON Lines format for machine parsing. Console output
    (when enabled) uses structlog's dev renderer. Both use local time.

    Args:
        config: Application config with paths and rotation settings
        console: Also render structlog events to stderr
        level: Minimum stdlib level for both handlers
    """
    # Ensure state directory exists for log file
    config.state_dir.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        config.log_path,
        maxBytes=config.system.log_max_bytes,
        backupCount=config.system.log_backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
                structlog.processors.add_log_level,
                _add_source("exporter"),
                structlog.processors.format_exc_info,
            ],
        )
    )

    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(level)
    stdlib_root.handlers.clear()
    stdlib_root.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.dev.ConsoleRenderer(),
                foreign_pre_chain=[
                    structlog.contextvars.merge_contextvars,
                    structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
                    structlog.processors.add_log_level,
                    structlog.processors.StackInfoRenderer(),
                    structlog.processors.format_exc_info,
                ],
            )
        )
        stdlib_root.addHandler(console_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
            structlog.processors.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
