"""Exception hierarchy for the isolator.

All isolator exceptions inherit from IsolatorError so callers can catch
broadly or narrowly.  Only ConfigError and, under the strict startup
policy, BindError end the process; the others are logged and contained.
"""

from __future__ import annotations

from pathlib import Path


class IsolatorError(Exception):
    """Base exception for all isolator errors."""


class ConfigError(IsolatorError):
    """Raised when a configuration source cannot be read, parsed or validated.

    Fatal: no service is started when loading fails.
    """

    def __init__(self, source: str, message: str) -> None:
        self.source = source
        super().__init__(f"{source}: {message}")


class ServiceError(IsolatorError):
    """Base for errors tied to one configured service."""

    def __init__(self, service_id: int, path: Path, message: str) -> None:
        self.service_id = service_id
        self.path = path
        super().__init__(f"service(id={service_id}) {path}: {message}")


class BindError(ServiceError):
    """Raised when the isolated-side socket cannot be bound.

    Examples: the path already exists, the parent directory is missing,
    permission denied.
    """


class AcceptError(ServiceError):
    """Raised when one accept-and-dial attempt fails.

    The accept loop logs it and keeps going.  When the dial to the raw side
    failed, the accepted client connection has already been closed.

    ``stage`` is ``"accept"`` when the inbound accept failed and ``"dial"``
    when connecting to the raw side failed.
    """

    def __init__(
        self,
        service_id: int,
        path: Path,
        message: str,
        *,
        stage: str = "accept",
    ) -> None:
        self.stage = stage
        super().__init__(service_id, path, message)


class RelayError(ServiceError):
    """A copy direction of a connection pair failed.

    Never propagated beyond the pair; it only appears in logs.
    """


class CleanupError(IsolatorError):
    """Removing an isolated-side socket file at shutdown failed."""

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}")
