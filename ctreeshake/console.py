#!/usr/bin/env python3

import logging

from rich.console import Console as RichConsole
from rich.logging import RichHandler


class Console:
    """Simple console wrapper focused on output."""

    def __init__(self):
        self._rich = RichConsole()

    def print(self, *args, **kwargs):
        """Print using Rich console."""
        return self._rich.print(*args, **kwargs)

    def status(self, *args, **kwargs):
        """Create Rich status context."""
        return self._rich.status(*args, **kwargs)

    def setup_logging(self, verbosity: int = 0) -> None:
        """Route library logging through this console; each -v lowers the level."""
        levels = [logging.WARNING, logging.INFO, logging.DEBUG]
        logging.basicConfig(
            level=levels[min(verbosity, len(levels) - 1)],
            format="%(message)s",
            handlers=[RichHandler(console=self._rich, show_path=False)],
            force=True,
        )
