"""RelayNode: one running service.

A node binds a Unix stream listener at the resolved isolated-side path and
remembers the resolved raw-side path.  The raw side is not contacted until a
client connects, so a raw service that is down at startup does not keep
the node from binding.
"""

from __future__ import annotations

import asyncio
import os
import socket
from collections.abc import Sequence
from pathlib import Path

from isolator.core.config import ServiceSpec
from isolator.core.constants import (
    DEFAULT_ACCEPT_ERROR_BACKOFF_SECONDS,
    DEFAULT_BUFFER_SIZE,
)
from isolator.core.exceptions import AcceptError, BindError
from isolator.core.logging import RelayContext, get_logger, with_context
from isolator.core.templates import Substitution
from isolator.relay.pair import Connection, ConnectionPair

_logger = get_logger("relay.node")

# Pending connections queued by the kernel before accept().
LISTEN_BACKLOG = 128


def bind_listener(path: Path, *, service_id: int = 0) -> socket.socket:
    """Bind and listen on a new non-blocking Unix stream socket at ``path``.

    Unlike ``asyncio.start_unix_server``, an existing filesystem entry at
    ``path`` is never removed: binding over it fails.

    Raises:
        BindError: If the path exists, its parent directory is missing,
            permission is denied, or the path is too long for AF_UNIX.
    """
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    bound = False
    try:
        sock.bind(str(path))
        bound = True
        sock.listen(LISTEN_BACKLOG)
        sock.setblocking(False)
    except OSError as exc:
        sock.close()
        if bound:
            path.unlink(missing_ok=True)
        raise BindError(service_id, path, f"cannot bind: {exc}") from exc
    return sock


class RelayNode:
    """A bound isolated-side listener paired with a raw-side path.

    The node exclusively owns its listener.  Use ``create()`` to build one
    from configuration.
    """

    def __init__(
        self,
        listener: socket.socket,
        raw_path: Path,
        isolated_path: Path,
        *,
        service_id: int = 0,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ) -> None:
        self._listener = listener
        self._raw_path = raw_path
        self._isolated_path = isolated_path
        self._service_id = service_id
        self._buffer_size = buffer_size

    @classmethod
    def create(
        cls,
        spec: ServiceSpec,
        substitutions: Sequence[Substitution],
        *,
        service_id: int = 0,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ) -> RelayNode:
        """Resolve ``spec`` and bind its isolated-side listener.

        Raises:
            BindError: If the isolated-side socket cannot be created.
        """
        raw_path = spec.raw_path_in(substitutions)
        isolated_path = spec.isolated_path_in(substitutions)
        listener = bind_listener(isolated_path, service_id=service_id)

        if spec.permissions is not None:
            try:
                os.chmod(isolated_path, spec.permissions)
            except OSError as exc:
                listener.close()
                isolated_path.unlink(missing_ok=True)
                raise BindError(
                    service_id, isolated_path, f"cannot set permissions: {exc}"
                ) from exc

        return cls(
            listener,
            raw_path,
            isolated_path,
            service_id=service_id,
            buffer_size=buffer_size,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def raw_path(self) -> Path:
        return self._raw_path

    @property
    def isolated_path(self) -> Path:
        return self._isolated_path

    @property
    def service_id(self) -> int:
        return self._service_id

    @property
    def closed(self) -> bool:
        """Whether the listener has been closed."""
        return self._listener.fileno() == -1

    # ------------------------------------------------------------------
    # Accepting
    # ------------------------------------------------------------------

    async def accept(self) -> ConnectionPair:
        """Wait for a client, then dial the raw side for it.

        Raises:
            AcceptError: If the inbound accept fails (``stage="accept"``) or
                the raw side cannot be reached (``stage="dial"``).  In the
                latter case the client connection is already closed.
        """
        loop = asyncio.get_running_loop()
        try:
            client_sock, _ = await loop.sock_accept(self._listener)
        except OSError as exc:
            raise AcceptError(
                self._service_id, self._isolated_path, f"accept failed: {exc}"
            ) from exc

        try:
            server = await Connection.open(self._raw_path)
        except OSError as exc:
            client_sock.close()
            raise AcceptError(
                self._service_id,
                self._raw_path,
                f"cannot connect to raw side: {exc}",
                stage="dial",
            ) from exc

        try:
            client = await Connection.wrap(client_sock)
        except OSError as exc:
            client_sock.close()
            await server.close()
            raise AcceptError(
                self._service_id, self._isolated_path, f"cannot wrap client: {exc}"
            ) from exc

        return ConnectionPair(
            client,
            server,
            service_id=self._service_id,
            raw_path=self._raw_path,
            buffer_size=self._buffer_size,
        )

    async def serve_forever(
        self,
        *,
        error_backoff: float = DEFAULT_ACCEPT_ERROR_BACKOFF_SECONDS,
    ) -> None:
        """Accept connections and relay each one until the listener closes.

        A failed accept or dial is logged and the loop continues.  Only a
        closed listener (or cancellation) ends the loop.
        """
        with with_context(RelayContext(service_id=self._service_id)):
            _logger.info(
                "relay.listening",
                isolated_path=str(self._isolated_path),
                raw_path=str(self._raw_path),
            )
            while not self.closed:
                try:
                    pair = await self.accept()
                except AcceptError as exc:
                    if self.closed:
                        break
                    _logger.warning("relay.accept_failed", stage=exc.stage, error=str(exc))
                    if exc.stage == "accept" and error_backoff > 0:
                        await asyncio.sleep(error_backoff)
                    continue
                pair.run()
            _logger.info("relay.listener_closed")

    def close(self) -> None:
        """Close the listener.  The socket file is left for cleanup to remove."""
        self._listener.close()

    def __repr__(self) -> str:
        return (
            f"RelayNode(service_id={self._service_id}, "
            f"isolated_path={str(self._isolated_path)!r}, "
            f"raw_path={str(self._raw_path)!r})"
        )


__all__ = ["LISTEN_BACKLOG", "RelayNode", "bind_listener"]
