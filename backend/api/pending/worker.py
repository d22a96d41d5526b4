"""Upload worker: Runs queued relays off the request threads."""

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

from config import UPLOAD_WORKERS
from api.pending.services import pending_service
from api.telegram.services.telegram_client import TelegramClient, get_telegram_client
from logging_config import get_logger

logger = get_logger("worker")


class UploadWorker:
    def __init__(
        self,
        client_factory: Callable[[], TelegramClient] = get_telegram_client,
        max_workers: int = UPLOAD_WORKERS,
    ):
        self._client_factory = client_factory
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="tgdrop-upload"
        )

    def submit(self, pending_id: int) -> Future:
        return self._executor.submit(self._run, pending_id)

    def _run(self, pending_id: int):
        try:
            return pending_service.process_pending_upload(pending_id, self._client_factory())
        except Exception:
            logger.exception(f"Unexpected error while processing pending upload {pending_id}")
            raise

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


_worker: UploadWorker | None = None


def get_upload_worker() -> UploadWorker:
    """FastAPI dependency returning the process-wide worker."""
    global _worker
    if _worker is None:
        _worker = UploadWorker()
    return _worker


def shutdown_upload_worker() -> None:
    global _worker
    if _worker is not None:
        _worker.shutdown(wait=False)
        _worker = None
