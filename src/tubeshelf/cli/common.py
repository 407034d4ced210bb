from __future__ import annotations

import argparse
import asyncio
from functools import partial
from typing import Awaitable, Callable, Optional

from rich.console import Console
from rich.table import Table

from tubeshelf.env import get_env
from tubeshelf.logger import get_logger
from tubeshelf.sync import (
    AuthExpiredError,
    InconsistentStateError,
    MutationEngine,
    PlaylistCache,
    PlaylistSyncError,
    QuotaExhaustedError,
)
from tubeshelf.youtube import (
    PlaylistApiClient,
    build_youtube_service,
    extract_playlist_id,
    is_unsupported_playlist_id,
)

# Terminal states, shared with anything that wraps the CLI.
EXIT_OK = 0
EXIT_QUOTA = 10
EXIT_AUTH = 12
EXIT_PARTIAL = 14
EXIT_FAILED = 20


# ----------------------------
# Help dispatch (subparser-local)
# ----------------------------


def dispatch_subparser_help(
    parser: argparse.ArgumentParser, path: list[str] | None
) -> int:
    """
    Implements consistent `X help [subcmd ...]` behavior for a subtree parser.
    """
    if not path:
        parser.print_help()
        return 0

    try:
        parser.parse_args(path + ["--help"])
    except SystemExit:
        pass
    return 0


def add_output_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--verbose", action="store_true", help="Verbose console output")
    parser.add_argument("--quiet", action="store_true", help="Suppress console output")


# ----------------------------
# Argument helpers
# ----------------------------


def playlist_arg(value: str) -> str:
    """argparse type: playlist id or URL with a ``list=`` parameter."""
    playlist_id = extract_playlist_id(value)
    if not playlist_id:
        raise argparse.ArgumentTypeError(f"Not a playlist id or URL: {value!r}")
    if is_unsupported_playlist_id(playlist_id):
        raise argparse.ArgumentTypeError(
            f"System playlist {playlist_id} cannot be managed through the API"
        )
    return playlist_id


# ----------------------------
# Engine wiring
# ----------------------------


def build_engine(session=None) -> MutationEngine:
    env = get_env()
    if session is None:
        from tubeshelf.auth import get_provider

        session = get_provider("youtube")

    client = PlaylistApiClient(
        service_factory=partial(build_youtube_service, timeout=env.request_timeout),
        page_size=env.page_size,
    )
    return MutationEngine(
        client,
        PlaylistCache(),
        session,
        enrich=env.enrich_durations,
    )


def run_engine_command(
    command: str,
    body: Callable[[MutationEngine], Awaitable[None]],
    engine: Optional[MutationEngine] = None,
) -> int:
    """Run ``body`` on a fresh engine and map the outcome to an exit code."""
    log = get_logger(f"cli.{command}")
    engine = engine or build_engine()

    try:
        asyncio.run(body(engine))
    except QuotaExhaustedError as e:
        log.warning(f"Done: quota exhausted ({e})")
        return EXIT_QUOTA
    except AuthExpiredError as e:
        log.error(f"Done: OAuth invalid (reauth required): {e}")
        return EXIT_AUTH
    except InconsistentStateError as e:
        log.error(f"Done: partially applied ({e})")
        return EXIT_PARTIAL
    except PlaylistSyncError as e:
        log.error(f"Done: failed ({e})")
        return EXIT_FAILED

    log.info("Done: OK")
    return EXIT_OK


# ----------------------------
# CLI output helpers
# ----------------------------


def format_duration(seconds: Optional[int]) -> str:
    if seconds is None:
        return "-"
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def print_table(
    headers: list[str],
    rows: list[list[str]],
    title: Optional[str] = None,
    console: Optional[Console] = None,
) -> None:
    console = console or Console()
    if not rows:
        console.print("(no results)")
        return

    table = Table(title=title, header_style="bold")
    for h in headers:
        table.add_column(h)
    for row in rows:
        table.add_row(*(str(c) for c in row))
    console.print(table)
