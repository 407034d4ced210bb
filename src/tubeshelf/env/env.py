from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from tubeshelf.env.paths import PROJECT_ROOT

# Hard cap of the playlistItems.list / playlists.list endpoints
MAX_PAGE_SIZE = 50

# ------------------------------------------------------------
# dotenv (read-only helper, bootstrap owns usage)
# ------------------------------------------------------------


def _load_dotenv(path: Path) -> bool:
    """
    Load a .env file.
    - Silent when missing
    - Never overrides existing os.environ
    """
    if not path.exists():
        return False
    return load_dotenv(path, override=False)


# ------------------------------------------------------------
# Errors / helpers
# ------------------------------------------------------------


class ConfigError(RuntimeError):
    pass


def _as_bool(v: str) -> bool:
    return v.strip().lower() in {"1", "true", "yes", "on"}


def _as_int(v: str, default: int) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def _as_float(v: str, default: float) -> float:
    try:
        return float(v)
    except (TypeError, ValueError):
        return default


# ------------------------------------------------------------
# Logging environment (SAFE ANYWHERE)
# ------------------------------------------------------------


@dataclass(frozen=True)
class LoggingEnvironment:
    log_level: str
    log_retention: int
    verbose: bool
    quiet: bool


def get_logging_env() -> LoggingEnvironment:
    return LoggingEnvironment(
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        log_retention=_as_int(os.environ.get("LOG_RETENTION", "30"), 30),
        verbose=_as_bool(os.environ.get("TUBESHELF_VERBOSE", "0")),
        quiet=_as_bool(os.environ.get("TUBESHELF_QUIET", "0")),
    )


# ------------------------------------------------------------
# Full runtime environment
# ------------------------------------------------------------


class Environment:
    def __init__(self):
        # Logging snapshot (immutable)
        self._logging = get_logging_env()

        # ---- API ----
        page_size = _as_int(os.environ.get("YT_PAGE_SIZE", "50"), MAX_PAGE_SIZE)
        if page_size < 1:
            raise ConfigError(f"YT_PAGE_SIZE must be positive, got {page_size}")
        self.page_size = min(page_size, MAX_PAGE_SIZE)

        self.request_timeout = _as_float(
            os.environ.get("YT_REQUEST_TIMEOUT", "30"), 30.0
        )
        if self.request_timeout <= 0:
            raise ConfigError(
                f"YT_REQUEST_TIMEOUT must be positive, got {self.request_timeout}"
            )

        # ---- BEHAVIOR ----
        self.enrich_durations = _as_bool(
            os.environ.get("TUBESHELF_ENRICH_DURATIONS", "1")
        )

        # ---- RUN CONTEXT ----
        self.command = os.environ.get("TUBESHELF_COMMAND", "bootstrap")
        self.run_id: Optional[str] = os.environ.get("TUBESHELF_RUN_ID")

    def as_dict(self) -> dict:
        return {
            "Logging": {
                "log_level": self.log_level,
                "log_retention": self.log_retention,
                "verbose": self.verbose,
                "quiet": self.quiet,
            },
            "API": {
                "page_size": self.page_size,
                "request_timeout": self.request_timeout,
            },
            "Behavior": {
                "enrich_durations": self.enrich_durations,
            },
            "Run": {
                "command": self.command,
                "run_id": self.run_id,
                "project_root": str(PROJECT_ROOT),
            },
        }

    # ---- logging passthrough ----
    @property
    def log_level(self) -> str:
        return self._logging.log_level

    @property
    def log_retention(self) -> int:
        return self._logging.log_retention

    @property
    def verbose(self) -> bool:
        return self._logging.verbose

    @property
    def quiet(self) -> bool:
        return self._logging.quiet


_ENV: Optional[Environment] = None


def reset_env_caches() -> None:
    """Invalidate cached views of environment variables."""
    global _ENV
    _ENV = None


def get_env() -> Environment:
    global _ENV
    if _ENV is None:
        _ENV = Environment()
    return _ENV
