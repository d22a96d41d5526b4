import io
import os
from datetime import timedelta

import httpx
import pytest
from sqlalchemy.exc import OperationalError

from errors import BackendProtocolError, BackendTransportError, ValidationError
from api.files.services import files_service
from api.pending.dto.pending import PendingStatus
from api.pending.repositories import pending_repository
from api.pending.services import pending_service
from api.pending.services.retry_policy import RetryPolicy, is_retryable
from api.upload.dto.upload import UploadMetadata
from conftest import api_error
from timeutils import utcnow


class RecordingWorker:
    def __init__(self):
        self.submitted = []

    def submit(self, pending_id):
        self.submitted.append(pending_id)


@pytest.fixture
def worker():
    return RecordingWorker()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def policy(sleeps):
    return RetryPolicy(max_attempts=3, sleep=sleeps.append)


def _enqueue(worker, data=b"x" * 1000, filename="data.bin", metadata=None):
    accepted = pending_service.enqueue_upload(
        io.BytesIO(data), filename, metadata or UploadMetadata(), worker
    )
    return accepted.pending_id


def test_backoff_doubles():
    policy = RetryPolicy()
    assert [policy.backoff(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]


def test_only_transient_failures_are_retryable():
    assert is_retryable(BackendTransportError("down"))
    assert is_retryable(BackendProtocolError("busy", error_code=429, transient=True))
    assert not is_retryable(BackendProtocolError("bad chat", error_code=400))
    assert not is_retryable(ValidationError("nope"))


def test_enqueue_returns_before_relay(worker, telegram):
    pending_id = _enqueue(worker)

    assert worker.submitted == [pending_id]
    assert telegram.sent == []
    status = pending_service.get_pending_status(pending_id)
    assert status.status == PendingStatus.PENDING
    assert status.progress == 0


def test_process_completes_and_removes_staged_file(worker, client, telegram, policy):
    data = b"payload" * 100
    pending_id = _enqueue(worker, data, metadata=UploadMetadata(description="queued"))
    staged = pending_repository.get(pending_id).file_path

    result = pending_service.process_pending_upload(pending_id, client, policy)

    assert result == PendingStatus.COMPLETED
    status = pending_service.get_pending_status(pending_id)
    assert status.progress == 100
    [file_id] = status.file_ids
    record = files_service.get_file(file_id)
    assert record.description == "queued"
    assert telegram.documents[record.telegram_file_id][1] == data
    assert not os.path.exists(staged)


def test_transient_failure_is_retried(worker, client, telegram, policy, sleeps):
    pending_id = _enqueue(worker)
    telegram.fail_next(api_error(502, "Bad Gateway"), httpx.ReadTimeout("slow"))

    result = pending_service.process_pending_upload(pending_id, client, policy)

    assert result == PendingStatus.COMPLETED
    assert sleeps == [2.0, 4.0]
    assert pending_service.get_pending_status(pending_id).retry_count == 2


def test_exhausted_retries_fail_and_keep_file(worker, client, telegram, policy, sleeps):
    pending_id = _enqueue(worker)
    staged = pending_repository.get(pending_id).file_path
    telegram.fail_next(*(httpx.ConnectError("refused") for _ in range(3)))

    result = pending_service.process_pending_upload(pending_id, client, policy)

    assert result == PendingStatus.FAILED
    assert sleeps == [2.0, 4.0]
    status = pending_service.get_pending_status(pending_id)
    assert status.retry_count == 3
    assert "3 attempt" in status.error_message
    assert os.path.exists(staged)
    assert files_service.list_files() == []


def test_permanent_failure_is_not_retried(worker, client, telegram, policy, sleeps):
    pending_id = _enqueue(worker)
    telegram.fail_next(api_error(400, "Bad Request: chat not found"))

    result = pending_service.process_pending_upload(pending_id, client, policy)

    assert result == PendingStatus.FAILED
    assert sleeps == []
    assert "chat not found" in pending_service.get_pending_status(pending_id).error_message


def test_duplicate_delivery_is_skipped(worker, client, telegram, policy):
    pending_id = _enqueue(worker)

    assert pending_service.process_pending_upload(pending_id, client, policy) == PendingStatus.COMPLETED
    assert pending_service.process_pending_upload(pending_id, client, policy) is None
    assert len(telegram.sent) == 1


def test_progress_never_goes_backwards(worker):
    pending_id = _enqueue(worker)
    assert pending_repository.claim(pending_id, pending_service.PROGRESS_START)

    assert pending_repository.advance_progress(pending_id, 50)
    assert not pending_repository.advance_progress(pending_id, 30)
    assert pending_service.get_pending_status(pending_id).progress == 50


def test_relay_progress_band():
    assert pending_service.relay_progress(0, 100) == 10
    assert pending_service.relay_progress(50, 100) == 45
    assert pending_service.relay_progress(100, 100) == 80
    assert pending_service.relay_progress(0, 0) == 10


def test_split_pending_upload(worker, make_client, telegram, policy):
    client = make_client(part_size=400)
    pending_id = _enqueue(worker, b"z" * 1000, filename="log.txt")

    pending_service.process_pending_upload(pending_id, client, policy)

    status = pending_service.get_pending_status(pending_id)
    assert status.status == PendingStatus.COMPLETED
    assert [files_service.get_file(i).filename for i in status.file_ids] == [
        "log_part1.txt",
        "log_part2.txt",
        "log_part3.txt",
    ]


def test_resume_requeues_waiting_rows(worker):
    first = _enqueue(worker)
    second = _enqueue(worker)
    pending_repository.claim(second, 10)
    restarted = RecordingWorker()

    assert pending_service.resume_pending(restarted) == 1
    assert restarted.submitted == [first]


def test_unexpected_error_fails_the_row(worker, client, policy, monkeypatch):
    pending_id = _enqueue(worker)

    def locked(*_args):
        raise OperationalError("UPDATE pending_uploads", {}, Exception("database is locked"))

    monkeypatch.setattr(pending_repository, "advance_progress", locked)

    assert pending_service.process_pending_upload(pending_id, client, policy) == PendingStatus.FAILED
    status = pending_service.get_pending_status(pending_id)
    assert status.status == PendingStatus.FAILED
    assert "database is locked" in status.error_message
    assert pending_service.cleanup_old_pending(utcnow() + timedelta(days=2)) == 1


def test_enqueue_rejects_bad_expiration(worker, telegram):
    with pytest.raises(ValidationError):
        _enqueue(worker, metadata=UploadMetadata(expiration_date="next tuesday"))

    assert worker.submitted == []


def _pending_row(created_at, status=PendingStatus.PENDING):
    row = pending_repository.create(
        file_path="/nonexistent/tg_row",
        filename="row.bin",
        size=1,
        metadata=UploadMetadata(),
        max_retries=3,
        created_at=created_at,
    )
    if status != PendingStatus.PENDING:
        pending_repository.claim(row.id, 10)
    if status == PendingStatus.COMPLETED:
        pending_repository.complete(row.id, [])
    elif status == PendingStatus.FAILED:
        pending_repository.fail(row.id, "boom")
    return row.id


def test_cleanup_old_pending_sweeps_stale_rows():
    now = utcnow()
    old_completed = _pending_row(now - timedelta(hours=25), PendingStatus.COMPLETED)
    recent_failed = _pending_row(now - timedelta(hours=2), PendingStatus.FAILED)
    stuck = _pending_row(now - timedelta(hours=2))
    waiting = _pending_row(now - timedelta(minutes=10))

    assert pending_service.cleanup_old_pending(now) == 2

    assert pending_repository.get(old_completed) is None
    assert pending_repository.get(stuck) is None
    assert pending_repository.get(recent_failed) is not None
    assert pending_repository.get(waiting) is not None
