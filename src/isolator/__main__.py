"""Allow ``python -m isolator``."""

from isolator.cli import app

app(prog_name="isolator")
