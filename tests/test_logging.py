"""Tests for logging configuration and console helpers."""

import json
import logging

import structlog

from mac_process_exporter import logging as mlog
from mac_process_exporter.config import Config


def _flush() -> None:
    for handler in logging.getLogger().handlers:
        handler.flush()


def test_configure_writes_json_lines(patched_config_paths, restore_logging):
    config = Config()
    mlog.configure(config)

    structlog.get_logger().info("scrape_failed", error="boom", groups=3)
    _flush()

    lines = config.log_path.read_text().splitlines()
    record = json.loads(lines[-1])
    assert record["event"] == "scrape_failed"
    assert record["error"] == "boom"
    assert record["groups"] == 3
    assert record["level"] == "info"


def test_configure_filters_debug_by_default(patched_config_paths, restore_logging):
    config = Config()
    mlog.configure(config)

    structlog.get_logger().debug("noisy_event")
    _flush()

    assert "noisy_event" not in config.log_path.read_text()


def test_configure_verbose_adds_console_handler(patched_config_paths, restore_logging):
    mlog.configure(Config(), console=True, level=logging.DEBUG)

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 2


def test_configure_stdlib_records_become_json(patched_config_paths, restore_logging):
    """Plain stdlib log records go through the JSON formatter too."""
    config = Config()
    mlog.configure(config)

    logging.getLogger("prometheus_client").warning("plain message")
    _flush()

    record = json.loads(config.log_path.read_text().splitlines()[-1])
    assert record["event"] == "plain message"
    assert record["source"] == "exporter"


def test_console_info_prints_message(capsys):
    mlog.info("hello there", mlog.Icon.OK)
    err = capsys.readouterr().err
    assert "hello there" in err
    assert "[info]" in err


def test_heartbeat_prints_counts(capsys):
    mlog.heartbeat(scrapes=12, failures=1, groups=40, elapsed_ms=55)
    err = capsys.readouterr().err
    assert "12" in err
    assert "1 failed" in err
    assert "40 groups" in err


def test_scrape_failed_prints_error(capsys):
    mlog.scrape_failed("process table unavailable")
    err = capsys.readouterr().err
    assert "Scrape failed: process table unavailable" in err
