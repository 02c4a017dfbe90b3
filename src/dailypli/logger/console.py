from __future__ import annotations

import logging
import sys

from rich.console import Console
from rich.logging import RichHandler

from dailypli.env import get_logging_env


class ConsoleGateFilter(logging.Filter):
    """
    Drop console output when quiet mode is enabled.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        return not get_logging_env().quiet


def build_console_handler(level: int = logging.INFO) -> logging.Handler:
    # Built per call so the handler follows sys.stdout swaps (pytest capsys).
    console = Console(file=sys.stdout, soft_wrap=True)

    handler = RichHandler(
        console=console,
        level=level,
        show_level=True,
        show_time=False,
        show_path=False,
        markup=False,
    )

    # RichHandler renders the level column; the formatter must not repeat it.
    handler.setFormatter(logging.Formatter("%(message)s"))

    handler.addFilter(ConsoleGateFilter())
    return handler
