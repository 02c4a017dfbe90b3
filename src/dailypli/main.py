from __future__ import annotations

import argparse
import sys

from dailypli.bootstrap import bootstrap_base_env, bootstrap_run_context


def _dispatch_help(argv: list[str]) -> int:
    # Support:
    #   dailypli help
    #   dailypli help auth
    #   dailypli auth help
    argv = [a for a in argv if a != "help"]
    try:
        build_parser().parse_args(argv + ["--help"])
    except SystemExit:
        pass
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="dailypli",
        description="Keep a YouTube playlist in sync with a channel's recent uploads.",
    )

    sub = p.add_subparsers(dest="command", required=True)

    help_cmd = sub.add_parser("help", help="Show help")
    help_cmd.add_argument("path", nargs="*", help="Command path to show help for")
    help_cmd.set_defaults(_help=True)

    # Keep imports inside builder to avoid early side effects.
    from dailypli.cli.cli_auth import build_auth_parser
    from dailypli.cli.cli_sync import build_sync_parser

    build_sync_parser(sub)
    build_auth_parser(sub)

    return p


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)

    # Load .env and base environment early
    bootstrap_base_env()

    if not argv:
        build_parser().print_help()
        return 0
    if argv[0] == "help" or argv[-1] == "help":
        return _dispatch_help(argv)

    parser = build_parser()
    args = parser.parse_args(argv)

    # Stamp run context before logging picks its file
    bootstrap_run_context(
        command=args.command,
        verbose=True if getattr(args, "verbose", False) else None,
        quiet=True if getattr(args, "quiet", False) else None,
    )

    if args.command == "sync":
        from dailypli.cli.cli_sync import handle_sync

        return handle_sync(args)

    if args.command == "auth":
        from dailypli.cli.cli_auth import handle_auth

        return handle_auth(args)

    raise RuntimeError(f"Unknown command: {args.command}")


if __name__ == "__main__":
    raise SystemExit(main())
