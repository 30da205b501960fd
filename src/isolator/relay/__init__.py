"""Relay engine: listeners, connection pairs and the supervisor.

Key components:
- RelayNode: one bound isolated-side listener plus its raw-side path
- ConnectionPair: one accepted client matched with one raw-side connection
- Supervisor: starts every configured node and cleans up on shutdown
"""

from isolator.core.exceptions import (
    AcceptError,
    BindError,
    CleanupError,
    ConfigError,
    IsolatorError,
    RelayError,
    ServiceError,
)
from isolator.relay.node import RelayNode
from isolator.relay.pair import ConnectionPair
from isolator.relay.supervisor import Supervisor, cleanup, resolved_isolated_paths

__all__ = [
    # Engine
    "ConnectionPair",
    "RelayNode",
    "Supervisor",
    "cleanup",
    "resolved_isolated_paths",
    # Exceptions
    "AcceptError",
    "BindError",
    "CleanupError",
    "ConfigError",
    "IsolatorError",
    "RelayError",
    "ServiceError",
]
