"""Cleanup: Expires files and sweeps stale tokens and pending uploads.

Run standalone: python cleanup.py
Meant to be called by cron, or through POST /api/cleanup.
"""

import time
from pathlib import Path

from api.files.services import files_service
from api.pending.repositories import pending_repository
from api.pending.services import pending_service
from api.tokens.services import token_service
from config import TEMP_DIR
from logging_config import get_logger, setup_logging
from timeutils import utcnow

logger = get_logger("cleanup")

STAGING_GRACE_SECONDS = 60 * 60


def _remove_orphaned_staging(now: float | None = None) -> int:
    """Delete staged uploads older than an hour that no pending row refers to."""
    now = now if now is not None else time.time()
    referenced = {Path(path).name for path in pending_repository.list_file_paths()}
    removed = 0
    for entry in TEMP_DIR.glob("tg_*"):
        if entry.name in referenced or not entry.is_file():
            continue
        if now - entry.stat().st_mtime < STAGING_GRACE_SECONDS:
            continue
        entry.unlink(missing_ok=True)
        removed += 1
    return removed


def run_cleanup() -> dict[str, int]:
    """Run every maintenance sweep once. Returns how much each one touched."""
    now = utcnow()
    report = {
        "deactivated_files": files_service.deactivate_expired_files(),
        "deleted_tokens": token_service.cleanup_expired(now),
        "deleted_pending": pending_service.cleanup_old_pending(now),
    }
    report["removed_staging_files"] = _remove_orphaned_staging()
    logger.info(
        "Cleanup finished: "
        + ", ".join(f"{key}={value}" for key, value in report.items())
    )
    return report


if __name__ == "__main__":
    setup_logging()
    run_cleanup()
