"""Supervisor: starts every configured service and cleans up on shutdown.

Startup walks the services in configuration order.  Each one that binds
gets a detached accept-loop task.  When a bind fails the startup policy
decides:

- strict: stop starting services, remove the isolated-side paths of all
  configured services, and return ``EXIT_STARTUP_ABORTED``.
- lenient: log the failure, skip the service and continue.

Then the supervisor waits for the shutdown event (set by SIGINT/SIGTERM
unless the caller supplies its own), removes the isolated-side socket
files unless cleanup is disabled, and returns ``EXIT_OK``.  Relays still in
flight are not drained; event-loop shutdown cancels them.
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

from isolator.core.config import RelayConfig, RelaySettings
from isolator.core.constants import EXIT_OK, EXIT_STARTUP_ABORTED
from isolator.core.exceptions import BindError, CleanupError
from isolator.core.logging import get_logger
from isolator.core.templates import Substitution
from isolator.relay.node import RelayNode
from isolator.relay.task_utils import spawn_detached

_logger = get_logger("supervisor")

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def resolved_isolated_paths(
    config: RelayConfig,
    substitutions: Sequence[Substitution],
) -> list[Path]:
    """Isolated-side paths of every configured service, in order."""
    return [spec.isolated_path_in(substitutions) for spec in config.services]


def cleanup(paths: Iterable[Path]) -> list[CleanupError]:
    """Remove each path, logging failures and moving on.

    Safe to run twice: a missing file is logged, not raised.

    Returns:
        The failures, one per path that could not be removed.
    """
    errors: list[CleanupError] = []
    _logger.debug("supervisor.cleanup_started")
    for path in paths:
        try:
            path.unlink()
        except OSError as exc:
            error = CleanupError(path, f"cannot remove: {exc}")
            _logger.warning("supervisor.cleanup_failed", path=str(path), error=str(exc))
            errors.append(error)
        else:
            _logger.debug("supervisor.cleanup_removed", path=str(path))
    return errors


class Supervisor:
    """Runs all configured relay nodes for the lifetime of the process.

    Parameters
    ----------
    config:
        Loaded services, in order.
    substitutions:
        ``(name, value)`` pairs applied to every path template.
    settings:
        Startup policy, cleanup switch and relay tuning.
    """

    def __init__(
        self,
        config: RelayConfig,
        substitutions: Sequence[Substitution] = (),
        settings: RelaySettings | None = None,
    ) -> None:
        self._config = config
        self._substitutions = list(substitutions)
        self._settings = settings or RelaySettings()
        self._nodes: list[RelayNode] = []
        self._tasks: set[asyncio.Task[Any]] = set()
        self._signals_installed: list[signal.Signals] = []

    @property
    def nodes(self) -> list[RelayNode]:
        """Nodes started so far."""
        return list(self._nodes)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> int | None:
        """Bind every service and launch its accept loop.

        Must be called from a running event loop.

        Returns:
            ``EXIT_STARTUP_ABORTED`` if strict startup aborted (cleanup has
            already run), otherwise None.
        """
        for index, spec in enumerate(self._config.services):
            try:
                node = RelayNode.create(
                    spec,
                    self._substitutions,
                    service_id=index,
                    buffer_size=self._settings.buffer_size,
                )
            except BindError as exc:
                if self._settings.strict:
                    _logger.error(
                        "supervisor.service_failed",
                        service=spec.label(index),
                        error=str(exc),
                        policy="strict",
                    )
                    self._cleanup()
                    return EXIT_STARTUP_ABORTED
                _logger.warning(
                    "supervisor.service_skipped",
                    service=spec.label(index),
                    error=str(exc),
                    policy="lenient",
                )
                continue

            self._nodes.append(node)
            spawn_detached(
                node.serve_forever(
                    error_backoff=self._settings.accept_error_backoff_seconds,
                ),
                self._tasks,
                _logger,
                "supervisor.accept_loop_died",
                name=f"accept-loop-{index}",
            )
            _logger.info(
                "supervisor.service_started",
                service=spec.label(index),
                isolated_path=str(node.isolated_path),
                raw_path=str(node.raw_path),
            )
        return None

    async def run(self, shutdown: asyncio.Event | None = None) -> int:
        """Start services, wait for shutdown, clean up.

        Args:
            shutdown: Event whose setting triggers cleanup and exit.  When
                None, SIGINT and SIGTERM handlers are installed to set it.

        Returns:
            The process exit code.
        """
        try:
            aborted = self.start()
            if aborted is not None:
                return aborted

            _logger.info(
                "supervisor.started",
                services=len(self._config.services),
                running=len(self._nodes),
            )

            if shutdown is None:
                shutdown = asyncio.Event()
                if not self._install_signal_handlers(shutdown):
                    # Nothing could ever wake us: clean up and leave now.
                    shutdown.set()
            await shutdown.wait()

            _logger.info("supervisor.shutting_down")
            self._cleanup()
            return EXIT_OK
        finally:
            await self._stop()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _cleanup(self) -> None:
        if not self._settings.cleanup:
            _logger.debug("supervisor.cleanup_disabled")
            return
        cleanup(resolved_isolated_paths(self._config, self._substitutions))

    def _install_signal_handlers(self, shutdown: asyncio.Event) -> bool:
        loop = asyncio.get_running_loop()
        for sig in SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig, shutdown)
            except (NotImplementedError, RuntimeError, ValueError) as exc:
                _logger.error(
                    "supervisor.signal_handler_failed",
                    signal=sig.name,
                    error=str(exc),
                )
                return False
            self._signals_installed.append(sig)
        return True

    def _on_signal(self, sig: signal.Signals, shutdown: asyncio.Event) -> None:
        if shutdown.is_set():
            _logger.info("supervisor.signal_ignored_already_shutting_down", signal=sig.name)
            return
        _logger.info("supervisor.signal_received", signal=sig.name)
        shutdown.set()

    async def _stop(self) -> None:
        """Stop accept loops and close listeners; relays are left running."""
        loop = asyncio.get_running_loop()
        for sig in self._signals_installed:
            loop.remove_signal_handler(sig)
        self._signals_installed.clear()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        for node in self._nodes:
            node.close()


__all__ = ["SHUTDOWN_SIGNALS", "Supervisor", "cleanup", "resolved_isolated_paths"]
