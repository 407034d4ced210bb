from __future__ import annotations

import os
from pathlib import Path

# ---------------------------------------------------------------------
# Project root
# ---------------------------------------------------------------------

# This file lives in src/tubeshelf/env/, so project root is three levels up
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent.parent


# ---------------------------------------------------------------------
# Base directories (override-friendly)
# ---------------------------------------------------------------------


def _resolve_dir(env_var: str, default: Path) -> Path:
    """
    Resolve a directory path from an environment variable or default.
    Ensures the directory exists.

    Resolved on every call so a changed environment (tests, CLI flags)
    is picked up without re-importing this module.
    """
    raw = os.environ.get(env_var)
    path = Path(raw).expanduser().resolve() if raw else default
    path.mkdir(parents=True, exist_ok=True)
    return path


def logs_dir() -> Path:
    return _resolve_dir("TUBESHELF_LOGS_DIR", PROJECT_ROOT / "logs")


def auth_dir() -> Path:
    """OAuth tokens and client secrets."""
    return _resolve_dir("TUBESHELF_AUTH_DIR", PROJECT_ROOT / "auth")


def state_dir() -> Path:
    """Local state (the progress record)."""
    return _resolve_dir("TUBESHELF_STATE_DIR", PROJECT_ROOT / "state")


# ---------------------------------------------------------------------
# Utility / internal paths
# ---------------------------------------------------------------------


def auth_token_file(filename: str = "oauth_token.json") -> Path:
    """
    Path to an auth token file inside the auth directory.
    """
    return auth_dir() / filename


def auth_client_secrets_file(filename: str = "client_secret.json") -> Path:
    """
    Path to an OAuth client secrets file inside the auth directory.
    """
    return auth_dir() / filename


def progress_record_file(filename: str = "progress.json") -> Path:
    return state_dir() / filename


# ---------------------------------------------------------------------
# Log layout helpers (used by logger)
# ---------------------------------------------------------------------


def module_logs_dir(command: str) -> Path:
    """
    Base log directory for a CLI command (e.g. show, auth).
    """
    path = logs_dir() / command
    path.mkdir(parents=True, exist_ok=True)
    return path
