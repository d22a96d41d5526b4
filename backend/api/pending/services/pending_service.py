"""Pending upload service: Queued relays for large or slow uploads.

The request handler stages the bytes in the data directory, records a
``pending`` row and hands the id to the upload worker. The worker claims the
row, relays it with retries and records the result. Callers poll the status.
"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import BinaryIO

from errors import NotFoundError, PersistenceError, RelayError
from api.pending.dto.pending import (
    PendingStatus,
    PendingUploadAccepted,
    PendingUploadStatus,
)
from api.pending.repositories import pending_repository
from api.pending.services.retry_policy import RetryPolicy
from api.telegram.services.telegram_client import TelegramClient
from api.upload.dto.upload import UploadMetadata
from api.upload.services import upload_service
from logging_config import get_logger
from timeutils import utcnow

logger = get_logger("services.pending")

# The relay itself owns this slice of the progress bar
PROGRESS_START = 10
PROGRESS_RELAYED = 80

FINISHED_TTL = timedelta(hours=24)
STUCK_PENDING_TTL = timedelta(hours=1)


def relay_progress(sent: int, total: int) -> int:
    """Map relay bytes into the 10-80% band."""
    if total <= 0:
        return PROGRESS_START
    span = PROGRESS_RELAYED - PROGRESS_START
    return min(PROGRESS_RELAYED, PROGRESS_START + sent * span // total)


def enqueue_upload(
    source: BinaryIO,
    filename: str,
    metadata: UploadMetadata,
    worker,
    max_retries: int = 3,
) -> PendingUploadAccepted:
    """Stage ``source`` on disk and queue it. Returns without talking to Telegram."""
    # Reject bad input now; the worker cannot report it as a 400
    upload_service.parse_expiration(metadata.expiration_date)
    filename = upload_service.safe_filename(filename)
    staged_path, size = upload_service.stage_stream(source, filename)

    pending = pending_repository.create(
        file_path=str(staged_path),
        filename=filename,
        size=size,
        metadata=metadata,
        max_retries=max_retries,
        created_at=utcnow(),
    )
    worker.submit(pending.id)
    logger.info(f"Queued {filename} ({size} bytes) as pending upload {pending.id}")

    return PendingUploadAccepted(
        pending_id=pending.id,
        status=PendingStatus.PENDING,
        message="Upload queued for processing",
    )


def process_pending_upload(
    pending_id: int,
    client: TelegramClient,
    policy: RetryPolicy | None = None,
) -> PendingStatus | None:
    """Relay one queued upload. Safe to call more than once for the same id.

    Returns the final status, or None when the row is missing or another call
    already claimed it.
    """
    pending = pending_repository.get(pending_id)
    if pending is None:
        logger.warning(f"Pending upload {pending_id} no longer exists")
        return None

    if not pending_repository.claim(pending_id, PROGRESS_START):
        logger.info(f"Pending upload {pending_id} is already {pending.status.value}, skipping")
        return None

    if policy is None:
        policy = RetryPolicy(max_attempts=pending.max_retries)
    failures = 0

    def on_failure(_attempt: int, exc: Exception) -> None:
        nonlocal failures
        failures += 1
        pending_repository.set_retry_count(pending_id, failures)

    def report(sent: int, total: int) -> None:
        pending_repository.advance_progress(pending_id, relay_progress(sent, total))

    def relay(path, filename, progress):
        return policy.call(
            lambda: client.send_document(path, filename, progress),
            on_failure=on_failure,
        )

    path = Path(pending.file_path)
    plan = upload_service.plan_upload(path, pending.filename, pending.size, client.config.part_size)

    try:
        records = upload_service.execute_plan(plan, pending.metadata, relay, progress=report)
        pending_repository.advance_progress(pending_id, PROGRESS_RELAYED)
        pending_repository.complete(pending_id, [record.id for record in records])
    except PersistenceError as exc:
        pending_repository.fail(pending_id, exc.message)
        return PendingStatus.FAILED
    except RelayError as exc:
        message = f"Failed to upload to Telegram after {failures} attempt(s): {exc.message}"
        logger.error(f"Pending upload {pending_id} failed: {message}")
        pending_repository.fail(pending_id, message)
        return PendingStatus.FAILED
    except OSError as exc:
        logger.error(f"Pending upload {pending_id} could not read {path}: {exc}")
        pending_repository.fail(pending_id, f"Staged file unreadable: {exc}")
        return PendingStatus.FAILED
    except Exception as exc:
        # Rows left in ``processing`` are never resumed or swept
        logger.exception(f"Pending upload {pending_id} failed unexpectedly")
        pending_repository.fail(pending_id, f"Unexpected error: {exc}")
        return PendingStatus.FAILED

    path.unlink(missing_ok=True)
    logger.info(f"Pending upload {pending_id} completed as {len(records)} record(s)")
    return PendingStatus.COMPLETED


def get_pending_status(pending_id: int) -> PendingUploadStatus:
    pending = pending_repository.get(pending_id)
    if pending is None:
        raise NotFoundError("Upload not found")
    return PendingUploadStatus(
        pending_id=pending.id,
        filename=pending.filename,
        status=pending.status,
        progress=pending.progress,
        error_message=pending.error_message,
        retry_count=pending.retry_count,
        file_ids=pending.file_ids,
    )


def resume_pending(worker, now: datetime | None = None) -> int:
    """Re-queue rows still waiting from before a restart."""
    cutoff = (now or utcnow()) - STUCK_PENDING_TTL
    ids = pending_repository.list_ids_by_status(PendingStatus.PENDING, cutoff)
    for pending_id in ids:
        worker.submit(pending_id)
    if ids:
        logger.info(f"Re-queued {len(ids)} pending upload(s)")
    return len(ids)


def cleanup_old_pending(now: datetime | None = None) -> int:
    now = now or utcnow()
    deleted = pending_repository.delete_created_before(
        [PendingStatus.COMPLETED, PendingStatus.FAILED], now - FINISHED_TTL
    )
    deleted += pending_repository.delete_created_before(
        [PendingStatus.PENDING], now - STUCK_PENDING_TTL
    )
    if deleted:
        logger.info(f"Cleaned up {deleted} old pending upload(s)")
    return deleted
