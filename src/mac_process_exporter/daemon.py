"""Long-running exporter serving per-group process metrics over HTTP."""

import asyncio
import logging
import signal
import threading
from wsgiref.simple_server import WSGIServer

import structlog
from prometheus_client import start_http_server

from mac_process_exporter import logging as mlog
from mac_process_exporter.collector import SnapshotCollector
from mac_process_exporter.config import Config
from mac_process_exporter.exposition import SnapshotMetrics, build_registry

log = structlog.get_logger()


def build_collector(config: Config) -> SnapshotCollector:
    """Construct the SnapshotCollector described by ``config``."""
    collection = config.collection
    return SnapshotCollector(
        supervisor_name=collection.supervisor_name,
        max_workers=collection.max_workers,
        batch_size=collection.batch_size,
        timeout=collection.timeout_seconds,
        log_groups=collection.log_groups,
    )


class Exporter:
    """Owns the HTTP listener and the collector it scrapes.

    The collector is built once here and handed to a private registry; there
    is no module-level registration.
    """

    def __init__(self, config: Config, collector: SnapshotCollector | None = None):
        self.config = config
        self.collector = collector or build_collector(config)
        self.metrics = SnapshotMetrics(self.collector)
        self.registry = build_registry(self.metrics)

        self._server: WSGIServer | None = None
        self._server_thread: threading.Thread | None = None
        self._shutdown_event = asyncio.Event()

    @property
    def port(self) -> int | None:
        """Port actually bound (differs from config when configured as 0)."""
        if self._server is None:
            return None
        return self._server.server_port

    async def start(self) -> None:
        """Start serving and block until shutdown is requested."""
        from importlib.metadata import PackageNotFoundError, version

        try:
            pkg_version = version("mac-process-exporter")
        except PackageNotFoundError:
            pkg_version = "unknown"

        server = self.config.server
        collection = self.config.collection
        log.info("exporter_starting", version=pkg_version)
        log.info(
            "exporter_config",
            host=server.host,
            port=server.port,
            supervisor=collection.supervisor_name,
            max_workers=collection.max_workers,
            batch_size=collection.batch_size,
            timeout_seconds=collection.timeout_seconds,
        )
        mlog.version_info("mac-process-exporter", pkg_version)
        mlog.collection_summary(
            collection.supervisor_name,
            collection.max_workers,
            collection.batch_size,
            collection.timeout_seconds,
        )

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: self._handle_signal(s))

        self._server, self._server_thread = start_http_server(
            server.port, addr=server.host, registry=self.registry
        )
        log.info("exporter_listening", host=server.host, port=self.port)
        mlog.exporter_listening(server.host, self.port)

        await self._main_loop()

    async def stop(self) -> None:
        """Stop the HTTP listener."""
        log.info("exporter_stopping")
        mlog.exporter_stopping()

        if self._server is not None:
            # shutdown() blocks until serve_forever() returns
            await asyncio.get_running_loop().run_in_executor(None, self._server.shutdown)
            self._server.server_close()
            self._server = None
        if self._server_thread is not None:
            self._server_thread.join(timeout=5)
            self._server_thread = None

        stats = self.metrics.stats
        log.info("exporter_stopped", scrapes=stats.scrapes, failures=stats.failures)
        mlog.exporter_stopped()

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signals."""
        log.info("signal_received", signal=sig.name)
        mlog.signal_received(sig.name)
        self.request_shutdown()

    async def _main_loop(self) -> None:
        """Wait for shutdown, logging a heartbeat every heartbeat_seconds."""
        interval = self.config.system.heartbeat_seconds
        while not self._shutdown_event.is_set():
            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=interval)
                break
            except asyncio.TimeoutError:
                stats = self.metrics.stats
                log.info(
                    "heartbeat",
                    scrapes=stats.scrapes,
                    failures=stats.failures,
                    groups=stats.last_groups,
                    elapsed_ms=stats.last_elapsed_ms,
                )
                mlog.heartbeat(
                    stats.scrapes, stats.failures, stats.last_groups, stats.last_elapsed_ms
                )


async def run_exporter(config: Config | None = None, verbose: bool = False) -> None:
    """Run the exporter until shutdown.

    Args:
        config: Optional config, loads from file if not provided
        verbose: Also echo structured debug logs to stderr
    """
    if config is None:
        config = Config.load()

    level = logging.DEBUG if verbose else logging.INFO
    mlog.configure(config, console=verbose, level=level)

    exporter = Exporter(config)

    try:
        await exporter.start()
    except Exception as e:
        log.exception("exporter_crashed", error=str(e))
        raise
    finally:
        await exporter.stop()
