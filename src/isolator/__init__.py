"""uds-isolator - transparent Unix domain socket relay.

Exposes an "isolated" socket path (typically inside a sandbox or container
mount) and forwards every byte to a "raw" service socket outside it.
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
