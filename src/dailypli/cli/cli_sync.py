from __future__ import annotations

import argparse
import os

from dailypli.env import reset_env_caches

# ------------------------------------------------------------
# Parser
# ------------------------------------------------------------


def build_sync_parser(subparsers: argparse._SubParsersAction) -> None:
    sync = subparsers.add_parser(
        "sync", help="Sync the channel's matching uploads into the playlist"
    )

    sync.add_argument("--channel-id", help="Override YOUTUBE_CHANNEL_ID")
    sync.add_argument("--playlist-id", help="Override YOUTUBE_PLAYLIST_ID")
    sync.add_argument(
        "--dry-run", action="store_true", help="Plan and log, change nothing"
    )
    sync.add_argument(
        "--reorder",
        action="store_true",
        help="Sort the playlist by publish date after syncing",
    )
    sync.add_argument("--verbose", action="store_true", help="Verbose console output")
    sync.add_argument("--quiet", action="store_true", help="Suppress console output")


# ------------------------------------------------------------
# Handler
# ------------------------------------------------------------


def handle_sync(args: argparse.Namespace) -> int:
    # Environment is the configuration boundary for the run
    if args.channel_id:
        os.environ["YOUTUBE_CHANNEL_ID"] = args.channel_id
    if args.playlist_id:
        os.environ["YOUTUBE_PLAYLIST_ID"] = args.playlist_id
    if args.dry_run:
        os.environ["DAILYPLI_DRY_RUN"] = "1"
    if args.reorder:
        os.environ["DAILYPLI_REORDER"] = "1"
    reset_env_caches()

    from dailypli.env import get_env
    from dailypli.logger import get_logger, init_logging
    from dailypli.runner import RunResult, run_once

    init_logging()
    log = get_logger("dailypli")

    env = get_env()
    log.debug(f"Environment: {env.as_dict()}")
    log.info(f"Channel: {env.channel_id or '(unset)'}")
    log.info(f"Playlist: {env.playlist_id or '(will be created)'}")
    if env.dry_run:
        log.info("Dry run: no changes will be made")

    result = run_once(env)

    # --------------------------------------------------
    # Run summary (explicit, non-interactive safe)
    # --------------------------------------------------

    log.info("Run summary:")
    for stage in result.stages:
        if stage.state == RunResult.SKIPPED:
            log.info(f"  - {stage.name}: skipped ({stage.reason})")
        else:
            log.info(f"  - {stage.name}: {stage.state.value}")

    # -----------------------------
    # Terminal state handling
    # -----------------------------

    if result.overall == RunResult.OK:
        log.info("Done: OK (playlist up to date)")
    elif result.overall == RunResult.QUOTA_EXHAUSTED:
        log.warning("Done: quota exhausted (playlist may be incomplete)")
    elif result.overall == RunResult.AUTH_INVALID:
        log.error("Done: OAuth invalid (reauth required)")
    elif result.overall == RunResult.CONFIG_INVALID:
        log.error("Done: configuration invalid")
    else:
        log.error("Done: failed")

    return result.exit_code
