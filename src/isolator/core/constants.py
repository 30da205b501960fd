"""Global constants for the isolator.

Centralizes exit codes and relay tuning defaults so the CLI, the
supervisor and the tests agree on them.
"""

# =============================================================================
# Process exit codes
# =============================================================================

EXIT_OK = 0
"""Normal shutdown after a termination signal."""

EXIT_CONFIG_ERROR = 1
"""Configuration could not be read, parsed or validated."""

EXIT_STARTUP_ABORTED = 3
"""A service failed to bind while running with the strict startup policy."""

# =============================================================================
# Relay defaults
# =============================================================================

DEFAULT_BUFFER_SIZE = 64 * 1024
"""Read size for each direction of a connection pair (bytes)."""

DEFAULT_ACCEPT_ERROR_BACKOFF_SECONDS = 0.05
"""Pause after a failed inbound accept before the loop tries again."""

STDIN_SOURCE = "-"
"""Configuration source name that selects standard input."""
