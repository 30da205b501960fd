"""Bidirectional byte relay between an accepted client and the raw service.

A ConnectionPair owns both connections once ``run()`` is called.  Two copy
loops run concurrently, one per direction.  End-of-stream on one side is
forwarded as a half-close (``write_eof``) so the peer sees it promptly; a
failure on one side closes the peer outright.  Both connections are closed
once both directions have stopped.  Nothing is retried or reported to the
caller: a failed relay only shows up in the debug log.
"""

from __future__ import annotations

import asyncio
import socket
from pathlib import Path
from typing import Any, NamedTuple

from isolator.core.constants import DEFAULT_BUFFER_SIZE
from isolator.core.exceptions import RelayError
from isolator.core.logging import (
    RelayContext,
    get_current_context,
    get_logger,
    with_context,
)
from isolator.relay.task_utils import spawn_detached

_logger = get_logger("relay.pair")

# Relay tasks in flight.  Never joined; the process exits without them.
_running_relays: set[asyncio.Task[Any]] = set()

CLIENT_TO_SERVER = "client_to_server"
SERVER_TO_CLIENT = "server_to_client"


class Connection(NamedTuple):
    """One side of a relay as an asyncio stream pair."""

    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter

    @classmethod
    async def open(cls, path: Path) -> Connection:
        """Dial a Unix stream socket at ``path``."""
        reader, writer = await asyncio.open_unix_connection(str(path))
        return cls(reader, writer)

    @classmethod
    async def wrap(cls, sock: socket.socket) -> Connection:
        """Wrap an already connected socket (e.g. from ``sock_accept``)."""
        reader, writer = await asyncio.open_unix_connection(sock=sock)
        return cls(reader, writer)

    async def close(self) -> None:
        """Close the connection, ignoring errors from an already dead peer."""
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError:
            pass


def running_relay_count() -> int:
    """Number of connection pairs currently relaying."""
    return len(_running_relays)


class ConnectionPair:
    """An accepted client connection matched with a fresh raw-side connection.

    Parameters
    ----------
    client:
        Connection accepted on the isolated-side listener.
    server:
        Connection dialed to the raw-side path.
    service_id:
        Index of the owning service, for diagnostics.
    raw_path:
        Raw-side path, for diagnostics.
    buffer_size:
        Maximum bytes read per iteration in each direction.
    """

    def __init__(
        self,
        client: Connection,
        server: Connection,
        *,
        service_id: int = 0,
        raw_path: Path | None = None,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ) -> None:
        self.client = client
        self.server = server
        self.service_id = service_id
        self.raw_path = raw_path or Path()
        self.buffer_size = buffer_size
        self.transferred: dict[str, int] = {CLIENT_TO_SERVER: 0, SERVER_TO_CLIENT: 0}

    def run(self) -> asyncio.Task[None]:
        """Start relaying in a detached task and return it.

        The caller must not touch either connection afterwards.  Awaiting the
        returned task is optional; it never raises for I/O failures.
        """
        base = get_current_context() or RelayContext(service_id=self.service_id)
        ctx = base.with_connection()
        # The task copies the current context, so set it around creation.
        with with_context(ctx):
            return spawn_detached(
                self._relay(),
                _running_relays,
                _logger,
                "relay.pair_task_failed",
                name=f"relay-{self.service_id}-{ctx.connection_id}",
            )

    async def _relay(self) -> None:
        _logger.debug("relay.pair_started", raw_path=str(self.raw_path))
        try:
            results = await asyncio.gather(
                self._pipe(self.client, self.server, CLIENT_TO_SERVER),
                self._pipe(self.server, self.client, SERVER_TO_CLIENT),
                return_exceptions=True,
            )
        finally:
            await self.client.close()
            await self.server.close()

        for direction, result in zip((CLIENT_TO_SERVER, SERVER_TO_CLIENT), results):
            if isinstance(result, RelayError):
                _logger.debug("relay.direction_failed", direction=direction, error=str(result))
            elif isinstance(result, BaseException):
                raise result

        _logger.debug(
            "relay.pair_finished",
            bytes_to_server=self.transferred[CLIENT_TO_SERVER],
            bytes_to_client=self.transferred[SERVER_TO_CLIENT],
        )

    async def _pipe(self, source: Connection, sink: Connection, direction: str) -> None:
        """Copy ``source`` to ``sink`` until end-of-stream or an error.

        Raises:
            RelayError: If reading or writing failed.  ``sink`` has been
                closed so the other direction winds down too.
        """
        try:
            while True:
                data = await source.reader.read(self.buffer_size)
                if not data:
                    break
                sink.writer.write(data)
                await sink.writer.drain()
                self.transferred[direction] += len(data)
        except OSError as exc:
            sink.writer.close()
            raise RelayError(
                self.service_id, self.raw_path, f"{direction} failed: {exc}"
            ) from exc

        if sink.writer.is_closing() or not sink.writer.can_write_eof():
            return
        try:
            sink.writer.write_eof()
        except OSError as exc:
            sink.writer.close()
            raise RelayError(
                self.service_id, self.raw_path, f"{direction} half-close failed: {exc}"
            ) from exc


__all__ = ["CLIENT_TO_SERVER", "SERVER_TO_CLIENT", "Connection", "ConnectionPair", "running_relay_count"]
