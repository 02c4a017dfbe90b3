from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Tuple

from dailypli.env import Environment, get_env
from dailypli.errors import (
    AuthError,
    ConfigurationError,
    DailyPliError,
    QuotaExceededError,
)
from dailypli.logger import get_logger
from dailypli.providers.youtube.api_manager import YouTubeGateway
from dailypli.providers.youtube.client import build_gateway
from dailypli.stages.reconcile import (
    PlaylistReconciler,
    ReconcileReport,
    ReconcileSettings,
)
from dailypli.stages.select import CandidateSelector, SelectorSettings

log = get_logger("dailypli.runner")


class RunResult(str, Enum):
    OK = "ok"
    QUOTA_EXHAUSTED = "quota_exhausted"
    AUTH_INVALID = "auth_invalid"
    CONFIG_INVALID = "config_invalid"
    FAILED = "failed"
    SKIPPED = "skipped"


_EXIT_CODES: dict[RunResult, int] = {
    RunResult.OK: 0,
    RunResult.SKIPPED: 0,
    RunResult.CONFIG_INVALID: 2,
    RunResult.QUOTA_EXHAUSTED: 10,
    RunResult.AUTH_INVALID: 12,
    RunResult.FAILED: 20,
}


def exit_code_for(result: RunResult) -> int:
    return _EXIT_CODES.get(result, 20)


@dataclass(frozen=True)
class StageResult:
    name: str
    state: RunResult
    exit_code: int
    reason: Optional[str] = None


@dataclass(frozen=True)
class RunOutcome:
    overall: RunResult
    stages: list[StageResult] = field(default_factory=list)
    report: Optional[ReconcileReport] = None

    @property
    def exit_code(self) -> int:
        return exit_code_for(self.overall)


_STAGES = ("Selection", "Reconcile")


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------


def _classify(exc: BaseException) -> RunResult:
    if isinstance(exc, QuotaExceededError):
        return RunResult.QUOTA_EXHAUSTED
    if isinstance(exc, AuthError):
        return RunResult.AUTH_INVALID
    if isinstance(exc, (ConfigurationError, re.error)):
        return RunResult.CONFIG_INVALID
    return RunResult.FAILED


def _run_stage(name: str, fn: Callable[[], Any]) -> Tuple[StageResult, Any]:
    log.debug(f"Stage start: {name}")
    try:
        value = fn()
    except (DailyPliError, re.error) as e:
        state = _classify(e)
        log.error(f"{name} failed ({state.value}): {e}")
        return StageResult(name, state, exit_code_for(state), reason=str(e)), None
    except Exception as e:
        log.exception(f"{name} failed with an unexpected error: {e}")
        return (
            StageResult(name, RunResult.FAILED, exit_code_for(RunResult.FAILED), str(e)),
            None,
        )

    log.debug(f"Stage end: {name} (ok)")
    return StageResult(name, RunResult.OK, 0), value


def _skipped(names: Any, reason: str) -> list[StageResult]:
    return [StageResult(n, RunResult.SKIPPED, -1, reason=reason) for n in names]


def _log_report(report: ReconcileReport, dry_run: bool) -> None:
    prefix = "[DRY-RUN] " if dry_run else ""
    log.info(
        f"{prefix}Playlist {report.playlist_id or '(not created)'}: "
        f"{report.existing} existing, {len(report.inserted)} inserted, "
        f"{len(report.evicted)} evicted, {report.moved} moved, "
        f"{report.duplicates_removed} duplicate(s) removed, "
        f"{report.final_size} final"
    )
    if report.warnings:
        log.warning(
            f"{len(report.warnings)} change(s) could not be applied; "
            "the next run will retry them"
        )
    if report.created:
        log.warning(
            f"Created playlist {report.playlist_id}. "
            f"Set YOUTUBE_PLAYLIST_ID={report.playlist_id} for future runs."
        )


# ------------------------------------------------------------
# Core execution
# ------------------------------------------------------------


def run_once(
    env: Optional[Environment] = None,
    gateway: Optional[YouTubeGateway] = None,
) -> RunOutcome:
    """
    One scheduled run: select candidates, then reconcile the playlist.

    Never raises for expected failures; the outcome carries the state and
    the exit code.
    """
    env = env or get_env()

    try:
        env.validate()
    except ConfigurationError as e:
        log.error(f"Configuration invalid: {e}")
        return RunOutcome(
            overall=RunResult.CONFIG_INVALID,
            stages=_skipped(_STAGES, "blocked_by_config_invalid"),
        )

    gw: dict[str, YouTubeGateway] = {}

    def _gateway() -> YouTubeGateway:
        if "gw" not in gw:
            gw["gw"] = gateway or build_gateway(env)
        return gw["gw"]

    settings = ReconcileSettings.from_env(env)
    playlist: dict[str, Optional[bool]] = {"exists": None}

    def _select() -> list:
        # Read-only check first so a stale playlist id surfaces on every run.
        if env.playlist_id:
            reconciler = PlaylistReconciler(_gateway(), settings)
            playlist["exists"] = reconciler.playlist_exists(env.playlist_id)
            if not playlist["exists"]:
                log.warning(
                    f"Playlist {env.playlist_id} not found; a new one will be "
                    "created when there is something to add"
                )

        selector = CandidateSelector(_gateway(), SelectorSettings.from_env(env))
        return selector.select(env.channel_id)

    selection, candidates = _run_stage("Selection", _select)
    if selection.state != RunResult.OK:
        return RunOutcome(
            overall=selection.state,
            stages=[selection] + _skipped(_STAGES[1:], f"blocked_by_{selection.state.value}"),
        )

    if not candidates:
        log.info("No matching uploads; playlist left untouched")
        return RunOutcome(
            overall=RunResult.OK,
            stages=[selection] + _skipped(_STAGES[1:], "no_candidates"),
        )

    def _reconcile() -> ReconcileReport:
        reconciler = PlaylistReconciler(_gateway(), settings)
        return reconciler.reconcile(
            env.playlist_id or None, candidates, playlist_exists=playlist["exists"]
        )

    reconcile, report = _run_stage("Reconcile", _reconcile)
    if reconcile.state != RunResult.OK:
        return RunOutcome(overall=reconcile.state, stages=[selection, reconcile])

    _log_report(report, settings.dry_run)
    return RunOutcome(overall=RunResult.OK, stages=[selection, reconcile], report=report)
