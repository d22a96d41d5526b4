from datetime import timedelta

import httpx
import pytest
from sqlalchemy import BigInteger
from sqlalchemy.exc import OperationalError

from config import TEMP_DIR
from errors import BackendProtocolError, BackendTransportError, PersistenceError, ValidationError
from api.files.orm.file_model import FileModel
from api.files.repositories import files_repository
from api.files.services import files_service
from api.pending.orm.pending_upload_model import PendingUploadModel
from api.upload.dto.upload import UploadMetadata
from api.upload.services import upload_service
from conftest import api_error
from timeutils import utcnow

KiB = 1024


def test_small_upload_is_one_record(client, telegram, make_file):
    path, data = make_file("photo.jpg", 10 * KiB)

    [record] = upload_service.upload_file(path, "photo.jpg", len(data), UploadMetadata(), client)

    assert record.filename == "photo.jpg"
    assert record.size == len(data)
    assert record.category == "images"
    assert record.group_id is None and record.part_number is None
    assert record.is_active and record.access_count == 0 and record.download_count == 0
    assert telegram.documents[record.telegram_file_id] == ("photo.jpg", data)


def test_large_upload_is_split_into_part_records(make_client, telegram, make_file):
    part_size = 49 * KiB
    client = make_client(part_size=part_size)
    path, data = make_file("backup.tar", 120 * KiB)

    records = upload_service.upload_file(path, "backup.tar", len(data), UploadMetadata(), client)

    assert [r.filename for r in records] == [
        "backup_part1.tar",
        "backup_part2.tar",
        "backup_part3.tar",
    ]
    assert [r.size for r in records] == [49 * KiB, 49 * KiB, 22 * KiB]
    assert [r.part_number for r in records] == [1, 2, 3]
    assert len({r.group_id for r in records}) == 1 and records[0].group_id
    relayed = b"".join(telegram.documents[r.telegram_file_id][1] for r in records)
    assert relayed == data
    assert not list(TEMP_DIR.glob("split_*"))


def test_metadata_is_applied_to_every_part(make_client, make_file):
    client = make_client(part_size=4 * KiB)
    path, data = make_file("notes.txt", 10 * KiB)
    metadata = UploadMetadata(password="pw", max_downloads=0, expiration_date="2h", tags=["a", " b "])

    records = upload_service.upload_file(path, "notes.txt", len(data), metadata, client)

    assert len(records) == 3
    for record in records:
        assert record.has_password
        assert record.max_downloads is None
        assert record.tags == "a,b"
        assert record.category == "documents"
        assert timedelta(minutes=119) < record.expires_at - utcnow() <= timedelta(hours=2)


def test_relay_failure_propagates_without_retry(client, telegram, make_file):
    path, data = make_file("a.bin", 100)
    telegram.fail_next(api_error(500, "Internal Server Error"))

    with pytest.raises(BackendProtocolError):
        upload_service.upload_file(path, "a.bin", len(data), UploadMetadata(), client)

    assert telegram.sent == []
    assert files_service.list_files() == []


def test_transport_failure(client, telegram, make_file):
    path, data = make_file("a.bin", 100)
    telegram.fail_next(httpx.ConnectError("connection refused"))

    with pytest.raises(BackendTransportError):
        upload_service.upload_file(path, "a.bin", len(data), UploadMetadata(), client)


def test_persistence_failure_names_telegram_file(client, make_file, monkeypatch):
    path, data = make_file("a.bin", 100)

    def broken_create(**fields):
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(files_repository, "create", broken_create)

    with pytest.raises(PersistenceError) as excinfo:
        upload_service.upload_file(path, "a.bin", len(data), UploadMetadata(), client)
    assert "doc1" in excinfo.value.message


def test_upload_from_url_keeps_source(client, telegram, make_file):
    telegram.documents["remote"] = ("remote.pdf", b"%PDF-1.7 remote")
    source = f"{client.config.api_base}/file/bot{client.config.bot_token}/documents/remote"

    [record] = upload_service.upload_from_url(source, "remote.pdf", UploadMetadata(), client)

    assert record.file_url == source
    assert record.size == len(b"%PDF-1.7 remote")
    assert not list(TEMP_DIR.glob("url_*"))


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("../../etc/passwd", "passwd"),
        ('a"b.txt', "ab.txt"),
        ("", "file"),
        ("C:\\Users\\me\\report.pdf", "report.pdf"),
    ],
)
def test_safe_filename(raw, expected):
    assert upload_service.safe_filename(raw) == expected


def test_parse_expiration_formats():
    assert upload_service.parse_expiration(None) is None
    relative = upload_service.parse_expiration("3d")
    assert timedelta(days=3) - timedelta(seconds=5) < relative - utcnow() <= timedelta(days=3)
    absolute = upload_service.parse_expiration("2030-01-01T00:00:00Z")
    assert absolute.year == 2030 and absolute.utcoffset() == timedelta(0)
    with pytest.raises(ValidationError):
        upload_service.parse_expiration("next tuesday")


def test_parse_metadata_rejects_bad_limit():
    with pytest.raises(ValidationError):
        upload_service.parse_metadata(max_downloads="lots")


def test_record_size_beyond_32_bits():
    size = 5 * 1024 * 1024 * 1024
    record = files_repository.create(filename="disk.img", size=size, telegram_file_id="doc-img")

    assert files_service.get_file(record.id).size == size


def test_size_columns_are_64_bit():
    assert isinstance(FileModel.__table__.c.size.type, BigInteger)
    assert isinstance(PendingUploadModel.__table__.c.size.type, BigInteger)
