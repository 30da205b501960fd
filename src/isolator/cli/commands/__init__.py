"""CLI command modules."""

from .check import check
from .run import run

__all__ = ["check", "run"]
