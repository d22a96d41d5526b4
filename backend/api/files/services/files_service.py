"""Files service: Business logic for file records.

All counter and state writes go through here so the read-through record cache
is invalidated on every change.
"""

from api.files.dto.file import FileRecord
from api.files.repositories import files_repository
from cache import file_records
from logging_config import get_logger

logger = get_logger("services.files")


def list_files() -> list[FileRecord]:
    return files_repository.list_all()


def get_file(file_id: int) -> FileRecord | None:
    return files_repository.get_by_id(file_id)


def get_file_cached(file_id: int) -> FileRecord | None:
    """Read-through lookup used on the download path."""
    record = file_records.get(file_id)
    if record is not None:
        return record
    record = files_repository.get_by_id(file_id)
    if record is not None:
        file_records.set(file_id, record)
    return record


def record_access(file_id: int) -> bool:
    passed = files_repository.try_increment_access(file_id)
    file_records.delete(file_id)
    return passed


def record_download(file_id: int) -> None:
    files_repository.increment_download(file_id)
    file_records.delete(file_id)


def deactivate_file(file_id: int) -> bool:
    changed = files_repository.deactivate(file_id)
    file_records.delete(file_id)
    if changed:
        logger.info(f"File {file_id} deactivated")
    return changed


def deactivate_expired_files() -> int:
    ids = files_repository.deactivate_expired()
    for file_id in ids:
        file_records.delete(file_id)
    return len(ids)


def delete_file(file_id: int) -> bool:
    """Delete the record. The Telegram message is left in the chat."""
    deleted = files_repository.delete_by_id(file_id)
    file_records.delete(file_id)
    return deleted
