from __future__ import annotations

import argparse

import requests
from rich.console import Console
from rich.text import Text

from dailypli import config
from dailypli.auth import AuthHealthStatus, YouTubeOAuthProvider
from dailypli.env import get_env
from dailypli.errors import AuthError
from dailypli.logger import get_logger, init_logging

REQUIRED_SCOPE = config.YOUTUBE_OAUTH_SCOPES[0]


# ------------------------------------------------------------
# Parser
# ------------------------------------------------------------


def build_auth_parser(subparsers: argparse._SubParsersAction) -> None:
    auth = subparsers.add_parser("auth", help="OAuth diagnostics and one-time login")
    asub = auth.add_subparsers(dest="auth_cmd", required=True)

    check = asub.add_parser("check", help="Verify the stored credentials work")
    scopes = asub.add_parser("scopes", help="List the scopes granted to the token")
    login = asub.add_parser(
        "login", help="Interactive consent flow; stores a refresh token"
    )

    for p in (check, scopes, login):
        p.add_argument("--verbose", action="store_true", help="Verbose console output")
        p.add_argument("--quiet", action="store_true", help="Suppress console output")

    check.set_defaults(action="check")
    scopes.set_defaults(action="scopes")
    login.set_defaults(action="login")


# ------------------------------------------------------------
# Handlers
# ------------------------------------------------------------


def _check(provider: YouTubeOAuthProvider, console: Console, args) -> int:
    result = provider.health_check()

    if result.status == AuthHealthStatus.OK:
        if not args.quiet:
            msg = Text("OAuth OK", style="green")
            if args.verbose:
                msg.append(" (token valid and usable)", style="dim")
            console.print(msg)
        return 0

    if result.status == AuthHealthStatus.OK_API_QUOTA:
        if not args.quiet:
            msg = Text("OAuth OK", style="green")
            msg.append(" (API quota exhausted)", style="yellow")
            console.print(msg)
        return 0

    if not args.quiet:
        console.print(Text(result.message, style="red"))
    return 12 if result.status == AuthHealthStatus.AUTH_INVALID else 20


def _scopes(provider: YouTubeOAuthProvider, console: Console, args) -> int:
    granted = provider.granted_scopes()

    if not args.quiet:
        for scope in granted:
            console.print(f"  {scope}")

    if REQUIRED_SCOPE not in granted:
        if not args.quiet:
            console.print(Text(f"Missing required scope: {REQUIRED_SCOPE}", style="red"))
        return 12

    if not args.quiet:
        console.print(Text("Scopes OK", style="green"))
    return 0


def _login(provider: YouTubeOAuthProvider, console: Console, args) -> int:
    creds = provider.login()

    console.print(Text("Login complete", style="green"))
    if creds.refresh_token:
        # Printed once so it can be stored in the scheduler's secret store.
        console.print("Store this as YOUTUBE_REFRESH_TOKEN:")
        console.print(creds.refresh_token, markup=False, highlight=False)
    else:
        console.print(
            Text("No refresh token was returned; revoke access and retry", style="yellow")
        )
    return 0


_HANDLERS = {"check": _check, "scopes": _scopes, "login": _login}


def handle_auth(args: argparse.Namespace) -> int:
    init_logging()
    logger = get_logger("dailypli.auth")

    console = Console()
    provider = YouTubeOAuthProvider(get_env())

    try:
        return _HANDLERS[args.action](provider, console, args)
    except AuthError as e:
        logger.error(f"auth {args.action} failed: {e}")
        if not args.quiet:
            console.print(Text(f"OAuth INVALID - {e}", style="red"))
        return 12
    except requests.RequestException as e:
        logger.error(f"auth {args.action} failed: {e}")
        if not args.quiet:
            console.print(Text(f"tokeninfo request failed: {e}", style="red"))
        return 20
