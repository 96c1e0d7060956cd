"""Allow ``python -m petwatch``."""

from petwatch.cli.app import app

app()
