from __future__ import annotations

import argparse

from rich.console import Console
from rich.text import Text

from tubeshelf.auth import AuthHealthStatus, check, get_provider
from tubeshelf.auth.errors import AuthError
from tubeshelf.cli.common import EXIT_AUTH, EXIT_OK, add_output_flags
from tubeshelf.env import get_logging_env
from tubeshelf.logger import get_logger


# ------------------------------------------------------------
# Parser
# ------------------------------------------------------------


def build_auth_parser(subparsers: argparse._SubParsersAction) -> None:
    auth = subparsers.add_parser(
        "auth",
        help="Check OAuth health and reauthenticate if required",
    )

    auth.add_argument(
        "--login",
        action="store_true",
        help="Run the browser sign-in flow if the stored token is unusable",
    )
    auth.add_argument(
        "--provider",
        default="youtube",
        help="Auth provider to check (default: youtube)",
    )
    add_output_flags(auth)

    auth.set_defaults(action="auth")


# ------------------------------------------------------------
# Handler
# ------------------------------------------------------------


def handle_auth(args: argparse.Namespace) -> int:
    logger = get_logger("auth")
    console = Console()
    env = get_logging_env()

    if args.login:
        try:
            get_provider(args.provider).ensure_ready()
        except AuthError as e:
            logger.error(f"oauth.login.failed: {e}")
            if not env.quiet:
                console.print(Text(f"Sign-in failed: {e}", style="red"))
            return EXIT_AUTH

    result = check(args.provider)

    if result.status == AuthHealthStatus.OK:
        if not env.quiet:
            msg = Text("OAuth OK", style="green")
            if env.verbose:
                msg.append(" (token valid and usable)", style="dim")
            console.print(msg)
        return EXIT_OK

    if result.status == AuthHealthStatus.OK_API_QUOTA:
        if not env.quiet:
            msg = Text("OAuth OK", style="green")
            msg.append(" (API quota exhausted)", style="yellow")
            console.print(msg)
        return EXIT_OK

    if not env.quiet:
        console.print(Text(result.message, style="red"))
        if result.status == AuthHealthStatus.AUTH_INVALID and not args.login:
            console.print(Text("Run `tubeshelf auth --login` to sign in again.", style="dim"))
    return EXIT_AUTH
