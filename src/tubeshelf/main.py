#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from typing import Optional

from tubeshelf.bootstrap import bootstrap_base_env, bootstrap_run_context


def _dispatch_help(parser: argparse.ArgumentParser, argv: list[str]) -> int:
    # Support:
    #   tubeshelf help
    #   tubeshelf help show
    #   tubeshelf show help
    if argv and argv[0] == "help":
        argv = argv[1:]
    argv = [a for a in argv if a != "help"]

    if not argv:
        parser.print_help()
        return 0

    try:
        build_parser().parse_args(argv[:1] + ["--help"])
    except SystemExit:
        pass
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="tubeshelf")

    sub = p.add_subparsers(dest="command", required=True)

    help_cmd = sub.add_parser("help", help="Show help")
    help_cmd.add_argument("path", nargs="*", help="Command path to show help for")
    help_cmd.set_defaults(_help=True)

    # Keep imports inside builder to avoid early side effects.
    from tubeshelf.cli.cli_auth import build_auth_parser
    from tubeshelf.cli.cli_playlists import build_playlists_parser

    build_auth_parser(sub)
    build_playlists_parser(sub)

    return p


def main(argv: Optional[list[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)

    # Load .env and base environment early
    bootstrap_base_env()

    parser = build_parser()

    # Unified help routing (before argparse rejects missing positionals)
    if not argv or argv[0] == "help" or argv[-1] == "help":
        return _dispatch_help(parser, argv)

    args = parser.parse_args(argv)

    bootstrap_run_context(
        command=args.command,
        verbose=bool(getattr(args, "verbose", False)),
        quiet=bool(getattr(args, "quiet", False)),
    )

    # Initialize logging AFTER run-context env stamping
    from tubeshelf.logger import get_logger, init_logging

    init_logging()

    log = get_logger(__name__)
    log.debug("tubeshelf starting")
    log.debug(f"Command: {args.command}")

    if args.command == "auth":
        from tubeshelf.cli.cli_auth import handle_auth

        return handle_auth(args)

    from tubeshelf.cli.cli_playlists import HANDLERS

    handler = HANDLERS.get(args.command)
    if handler is None:
        raise RuntimeError(f"Unknown command: {args.command}")
    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
