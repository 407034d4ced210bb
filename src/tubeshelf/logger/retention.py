from __future__ import annotations

from pathlib import Path

from tubeshelf.logger.state import get_logger

log = get_logger(__name__)


def enforce_retention(log_dir: Path, keep: int) -> int:
    """Delete all but the ``keep`` newest ``*.log`` files. Returns the number removed."""
    if keep <= 0:
        return 0

    logs = sorted(
        log_dir.glob("*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )

    removed = 0
    for old in logs[keep:]:
        try:
            old.unlink()
            removed += 1
        except OSError as e:
            log.debug(f"Could not prune {old}: {e}")
    return removed
