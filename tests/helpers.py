"""Shared test helpers for isolator tests."""

from __future__ import annotations

import asyncio
from pathlib import Path


class RawService:
    """Stand-in for the real service behind the relay.

    Reads each connection to end-of-stream, records what arrived, then
    writes ``reply`` (or echoes the request when ``reply`` is None) and
    closes.
    """

    def __init__(self, path: Path, reply: bytes | None = None) -> None:
        self.path = path
        self.reply = reply
        self.received: list[bytes] = []
        self.connections = 0
        self._server: asyncio.Server | None = None

    async def start(self) -> RawService:
        self._server = await asyncio.start_unix_server(self._handle, path=str(self.path))
        return self

    async def stop(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        self.path.unlink(missing_ok=True)

    async def _handle(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        self.connections += 1
        data = await reader.read()
        self.received.append(data)
        writer.write(data if self.reply is None else self.reply)
        await writer.drain()
        writer.close()
        await writer.wait_closed()

    async def __aenter__(self) -> RawService:
        return await self.start()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()


async def exchange(path: Path, payload: bytes, *, timeout: float = 5.0) -> bytes:
    """Connect to ``path``, send ``payload``, half-close and read the answer."""
    reader, writer = await asyncio.open_unix_connection(str(path))
    try:
        writer.write(payload)
        await writer.drain()
        writer.write_eof()
        return await asyncio.wait_for(reader.read(), timeout=timeout)
    finally:
        writer.close()
        await writer.wait_closed()


async def wait_for_path(path: Path, *, timeout: float = 5.0) -> None:
    """Poll until ``path`` exists."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not path.exists():
        if loop.time() > deadline:
            raise TimeoutError(f"{path} did not appear")
        await asyncio.sleep(0.01)
