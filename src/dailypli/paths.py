from __future__ import annotations

import os
from pathlib import Path

# ---------------------------------------------------------------------
# Project root
# ---------------------------------------------------------------------

# This file lives in src/dailypli/, so project root is two levels up
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


# ---------------------------------------------------------------------
# Base directories (override-friendly)
# ---------------------------------------------------------------------


def _resolve_dir(env_var: str, default: Path) -> Path:
    """
    Resolve a directory path from an environment variable or default.
    Ensures the directory exists.
    """
    raw = os.environ.get(env_var)
    path = Path(raw).expanduser().resolve() if raw else default
    path.mkdir(parents=True, exist_ok=True)
    return path


def logs_dir() -> Path:
    return _resolve_dir("DAILYPLI_LOGS_DIR", PROJECT_ROOT / "logs")


def auth_dir() -> Path:
    return _resolve_dir("DAILYPLI_AUTH_DIR", PROJECT_ROOT / "auth")


def config_dir() -> Path:
    return PROJECT_ROOT / "config"


# ---------------------------------------------------------------------
# Utility paths
# ---------------------------------------------------------------------


def auth_token_file(filename: str = "oauth_token.json") -> Path:
    """
    Path to the authorized-user token file inside the auth directory.
    """
    return auth_dir() / filename


def auth_client_secrets_file(filename: str = "client_secret.json") -> Path:
    """
    Path to an OAuth client secrets file inside the auth directory.
    """
    return auth_dir() / filename


def command_logs_dir(command: str) -> Path:
    """
    Log directory for a CLI command (e.g. sync, auth).
    """
    path = logs_dir() / command
    path.mkdir(parents=True, exist_ok=True)
    return path
