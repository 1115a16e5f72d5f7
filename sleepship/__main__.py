"""Allow ``python -m sleepship``."""

from sleepship.cli.main import run

run()
