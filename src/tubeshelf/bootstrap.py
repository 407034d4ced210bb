"""bootstrap.py

Process bootstrap for tubeshelf.

This module is intentionally tiny and side-effectful.

Rules:
1) Only bootstrap is allowed to *mutate* os.environ for shared run context.
2) Call bootstrap_base_env() exactly once at the true entrypoint.
3) Call bootstrap_run_context() after argparse parsing, before init_logging().

Everything else should treat environment variables as the source of truth.
"""

from __future__ import annotations

import os
from datetime import datetime

from tubeshelf.env import PROJECT_ROOT, _load_dotenv, reset_env_caches

_BOOTSTRAPPED = False


def bootstrap_base_env() -> None:
    global _BOOTSTRAPPED
    if _BOOTSTRAPPED:
        return

    # Optional: shell / CI variables are enough to run.
    _load_dotenv(PROJECT_ROOT / "config" / ".env")

    os.environ.setdefault(
        "TUBESHELF_RUN_ID",
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
    """Establish run-scoped context used by logging and the CLI handlers."""

    os.environ["TUBESHELF_COMMAND"] = command

    if verbose is not None:
        os.environ["TUBESHELF_VERBOSE"] = "1" if verbose else "0"
    if quiet is not None:
        os.environ["TUBESHELF_QUIET"] = "1" if quiet else "0"

    # Context changes must invalidate cached env views.
    reset_env_caches()
