"""bootstrap.py

Process bootstrap for DailyPli.

Rules:
1) Only bootstrap is allowed to *mutate* os.environ for shared run context.
2) Call bootstrap_base_env() exactly once at the true entrypoint.
3) Call bootstrap_run_context() after argparse parsing, before init_logging().

Everything else treats environment variables as the source of truth.
"""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from dailypli.env import reset_env_caches
from dailypli.paths import config_dir

_BOOTSTRAPPED = False


def _dotenv_candidates() -> list[Path]:
    return [config_dir() / ".env", Path.cwd() / ".env"]


def bootstrap_base_env() -> None:
    """
    Load optional .env files. Real environment variables always win,
    so a scheduler's secrets are never shadowed by a stale local file.
    """
    global _BOOTSTRAPPED
    if _BOOTSTRAPPED:
        return

    for path in _dotenv_candidates():
        if path.is_file():
            load_dotenv(path, override=False)

    os.environ.setdefault(
        "DAILYPLI_RUN_ID",
        datetime.now().strftime("%Y-%m-%d_%H-%M-%S"),
    )

    reset_env_caches()
    _BOOTSTRAPPED = True


def bootstrap_run_context(
    *,
    command: str,
    verbose: bool | None = None,
    quiet: bool | None = None,
) -> None:
    """Establish run-scoped context used by logging and the stages."""

    os.environ["DAILYPLI_COMMAND"] = command

    if verbose is not None:
        os.environ["DAILYPLI_VERBOSE"] = "1" if verbose else "0"
    if quiet is not None:
        os.environ["DAILYPLI_QUIET"] = "1" if quiet else "0"

    # Context changes must invalidate cached env views.
    reset_env_caches()
