from __future__ import annotations

from pathlib import Path


def enforce_retention(log_dir: Path, keep: int, pattern: str = "*.log") -> None:
    """
    Keep only the newest ``keep`` files matching ``pattern`` in ``log_dir``.
    A non-positive ``keep`` disables pruning.
    """
    if keep <= 0:
        return

    logs = sorted(
        log_dir.glob(pattern),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )

    for old in logs[keep:]:
        try:
            old.unlink()
        except OSError:
            # Locked or already removed; the next run retries.
            continue
