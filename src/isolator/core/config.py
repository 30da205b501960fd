"""Configuration models and loading.

A configuration is an ordered list of services.  Each service names a raw
path template (the real service socket) and an isolated path template (the
socket the relay creates), both resolved at startup with the ``-D``
substitutions.

Accepted document shapes, JSON or YAML::

    {"services": [{"raw_path": "...", "isolated_path": "..."}, ...]}
    [{"src": "...", "dst": "..."}, ...]
    {"src": "...", "dst": "..."}

Several documents may be given; their services are concatenated in order,
which supports one-file-per-service deployments.
"""

from __future__ import annotations

import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from isolator.core.constants import (
    DEFAULT_ACCEPT_ERROR_BACKOFF_SECONDS,
    DEFAULT_BUFFER_SIZE,
    STDIN_SOURCE,
)
from isolator.core.exceptions import ConfigError
from isolator.core.logging import get_logger
from isolator.core.templates import Substitution, resolve

_logger = get_logger("config")

_YAML_SUFFIXES = frozenset({".yaml", ".yml"})


class ServiceSpec(BaseModel):
    """One configured relay: where to forward to and where to listen.

    ``src``/``dst`` are accepted as synonyms of ``raw_path``/``isolated_path``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    raw_path: str = Field(
        min_length=1,
        validation_alias=AliasChoices("raw_path", "src"),
        description="Path template of the real service socket the relay dials",
    )
    isolated_path: str = Field(
        min_length=1,
        validation_alias=AliasChoices("isolated_path", "dst"),
        description="Path template of the socket the relay binds for clients",
    )
    name: str | None = Field(
        default=None,
        description="Optional label used in diagnostics",
    )
    permissions: int | None = Field(
        default=None,
        ge=0,
        le=0o777,
        description="File mode applied to the isolated socket after bind. "
        "Accepts an integer or an octal string such as \"0660\".",
    )

    @field_validator("permissions", mode="before")
    @classmethod
    def _parse_octal(cls, v: Any) -> Any:
        if isinstance(v, str):
            try:
                return int(v, 8)
            except ValueError:
                raise ValueError(f"permissions must be an octal string, got {v!r}") from None
        return v

    def raw_path_in(self, substitutions: Sequence[Substitution]) -> Path:
        """Resolve the raw-side path template."""
        return resolve(self.raw_path, substitutions)

    def isolated_path_in(self, substitutions: Sequence[Substitution]) -> Path:
        """Resolve the isolated-side path template."""
        return resolve(self.isolated_path, substitutions)

    def label(self, index: int) -> str:
        """Human-readable identifier for diagnostics."""
        if self.name:
            return f"{index} ({self.name})"
        return str(index)


class RelayConfig(BaseModel):
    """Ordered collection of services; list order is the service index."""

    model_config = ConfigDict(extra="forbid")

    services: list[ServiceSpec] = Field(default_factory=list)

    @classmethod
    def from_document(cls, data: Any) -> RelayConfig:
        """Build a config from any of the accepted document shapes.

        Raises:
            pydantic.ValidationError: If the document does not match.
            TypeError: If the top-level value is neither a list nor a mapping.
        """
        if isinstance(data, list):
            return cls.model_validate({"services": data})
        if isinstance(data, dict):
            if "services" in data:
                return cls.model_validate(data)
            return cls(services=[ServiceSpec.model_validate(data)])
        raise TypeError(
            f"expected a list of services or a mapping, got {type(data).__name__}"
        )

    def merged(self, other: RelayConfig) -> RelayConfig:
        """Return a config with ``other``'s services appended."""
        return RelayConfig(services=[*self.services, *other.services])


class RelaySettings(BaseModel):
    """Runtime knobs for the supervisor, set from the command line."""

    strict: bool = Field(
        default=True,
        description="Abort the whole process when one service fails to bind. "
        "When False the failing service is skipped.",
    )
    cleanup: bool = Field(
        default=True,
        description="Remove isolated-side socket files on shutdown.",
    )
    buffer_size: int = Field(
        default=DEFAULT_BUFFER_SIZE,
        ge=1,
        description="Read size for each relay direction in bytes.",
    )
    accept_error_backoff_seconds: float = Field(
        default=DEFAULT_ACCEPT_ERROR_BACKOFF_SECONDS,
        ge=0.0,
        description="Pause after a failed inbound accept.",
    )


def _read_source(source: str) -> str:
    if source == STDIN_SOURCE:
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def _parse(source: str, text: str) -> Any:
    if source != STDIN_SOURCE and Path(source).suffix.lower() in _YAML_SUFFIXES:
        return yaml.safe_load(text)
    return json.loads(text)


def load_source(source: str) -> RelayConfig:
    """Load one configuration document from a file path or ``-`` (stdin).

    Raises:
        ConfigError: If the source cannot be read or parsed, or if its
            content does not describe services.
    """
    try:
        text = _read_source(source)
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(source, f"cannot read configuration: {exc}") from exc

    try:
        data = _parse(source, text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(source, f"cannot parse configuration: {exc}") from exc

    if data is None:
        raise ConfigError(source, "configuration document is empty")

    try:
        config = RelayConfig.from_document(data)
    except (ValidationError, TypeError) as exc:
        raise ConfigError(source, f"invalid configuration: {exc}") from exc

    _logger.debug("config.loaded", source=source, services=len(config.services))
    return config


def load_config(sources: Sequence[str]) -> RelayConfig:
    """Load and concatenate every source in order.

    No partial success: the first failing source aborts the whole load.

    Raises:
        ConfigError: If ``sources`` is empty or any source fails to load.
    """
    if not sources:
        raise ConfigError("<none>", "no configuration source given")

    config = RelayConfig()
    for source in sources:
        config = config.merged(load_source(source))
    return config


__all__ = [
    "RelayConfig",
    "RelaySettings",
    "ServiceSpec",
    "load_config",
    "load_source",
]
