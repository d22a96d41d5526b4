"""Upload service: Relays files to Telegram and stores their records.

Every upload is resolved once into either a ``SinglePartUpload`` or a
``SplitUpload``. Split uploads are cut by the splitter and each part becomes
its own file record; nothing reassembles them.
"""

import math
import re
import shutil
import tempfile
import uuid
from contextlib import closing
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path, PurePath
from typing import Callable

import pydantic
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from config import BOT_CONFIG, TEMP_DIR
from errors import BackendProtocolError, PersistenceError, ValidationError
from api.access.services.access_service import hash_password
from api.files.dto.file import FileRecord
from api.files.repositories import files_repository
from api.telegram.dto.telegram import BackendDocument
from api.telegram.services.telegram_client import ProgressCallback, TelegramClient
from api.tokens.services import token_service
from api.upload.dto.upload import UploadedFile, UploadMetadata, UploadResponse
from api.upload.services import splitter
from logging_config import get_logger
from timeutils import utcnow

logger = get_logger("services.upload")

# (path, filename, progress) -> document
Relay = Callable[[Path, str, ProgressCallback | None], BackendDocument]

CATEGORY_EXTENSIONS = {
    "documents": {"pdf", "doc", "docx", "txt", "rtf", "odt", "xls", "xlsx", "ppt", "pptx"},
    "images": {"jpg", "jpeg", "png", "gif", "bmp", "svg", "webp", "ico"},
    "videos": {"mp4", "avi", "mov", "wmv", "flv", "mkv", "webm", "m4v"},
    "audio": {"mp3", "wav", "ogg", "flac", "aac", "m4a", "wma"},
    "archives": {"zip", "rar", "7z", "tar", "gz", "bz2", "iso"},
}


@dataclass(frozen=True)
class SinglePartUpload:
    path: Path
    filename: str
    size: int


@dataclass(frozen=True)
class SplitUpload:
    path: Path
    filename: str
    size: int
    part_size: int

    @property
    def part_count(self) -> int:
        return math.ceil(self.size / self.part_size)


UploadPlan = SinglePartUpload | SplitUpload


def plan_upload(path: Path, filename: str, size: int, part_size: int = BOT_CONFIG.part_size) -> UploadPlan:
    if size > part_size:
        return SplitUpload(path=path, filename=filename, size=size, part_size=part_size)
    return SinglePartUpload(path=path, filename=filename, size=size)


# Metadata handling


def safe_filename(name: str | None) -> str:
    """Strip directories and characters that break headers or paths."""
    name = PurePath((name or "").replace("\\", "/")).name
    name = re.sub(r'[\x00-\x1f"<>|:*?]', "", name).strip(" .")
    return name or "file"


def parse_metadata(**fields) -> UploadMetadata:
    try:
        return UploadMetadata(**fields)
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(loc) for loc in first.get("loc", ()))
        raise ValidationError(f"Invalid {field or 'metadata'}: {first.get('msg')}")


def parse_expiration(value: str | None) -> datetime | None:
    """Accept a relative duration ('30m', '2h', '3d', '1w') or an ISO-8601 timestamp.

    Timestamps without an offset are read as server-local time.
    """
    if not value:
        return None
    value = value.strip()

    match = re.match(r"^(\d+)([mhdw])$", value.lower())
    if match:
        amount = int(match.group(1))
        deltas = {
            "m": timedelta(minutes=amount),
            "h": timedelta(hours=amount),
            "d": timedelta(days=amount),
            "w": timedelta(weeks=amount),
        }
        return utcnow() + deltas[match.group(2)]

    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid expiration date: {value}")
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed.astimezone(timezone.utc)


def detect_category(filename: str) -> str:
    ext = PurePath(filename).suffix.lower().lstrip(".")
    for category, extensions in CATEGORY_EXTENSIONS.items():
        if ext in extensions:
            return category
    return "other"


def build_record_fields(metadata: UploadMetadata, filename: str) -> dict:
    """Turn upload metadata into the access-control columns of a record."""
    return {
        "category": metadata.category or detect_category(filename),
        "tags": metadata.tags,
        "description": metadata.description,
        "expires_at": parse_expiration(metadata.expiration_date),
        "password_hash": hash_password(metadata.password) if metadata.password else None,
        "max_downloads": metadata.max_downloads,
    }


def persist_record(
    filename: str,
    size: int,
    telegram_file_id: str,
    fields: dict,
    file_url: str | None = None,
    group_id: str | None = None,
    part_number: int | None = None,
) -> FileRecord:
    try:
        return files_repository.create(
            filename=filename,
            size=size,
            telegram_file_id=telegram_file_id,
            file_url=file_url,
            group_id=group_id,
            part_number=part_number,
            **fields,
        )
    except SQLAlchemyError as exc:
        logger.error(f"Saving record for Telegram file {telegram_file_id} failed: {exc}")
        raise PersistenceError(
            f"Telegram accepted {filename} (file id {telegram_file_id}) "
            "but the file record could not be saved",
            detail=str(exc),
        ) from exc


# Relay


def execute_plan(
    plan: UploadPlan,
    metadata: UploadMetadata,
    relay: Relay,
    progress: ProgressCallback | None = None,
    file_url: str | None = None,
) -> list[FileRecord]:
    """Relay every part of ``plan`` and store one record per part.

    ``progress`` receives bytes sent across the whole plan.
    """
    fields = build_record_fields(metadata, plan.filename)

    if isinstance(plan, SinglePartUpload):
        document = relay(plan.path, plan.filename, progress)
        return [
            persist_record(plan.filename, plan.size, document.file_id, fields, file_url=file_url)
        ]

    group_id = uuid.uuid4().hex
    records: list[FileRecord] = []
    sent_before = 0
    logger.info(f"Splitting {plan.filename} ({plan.size} bytes) into {plan.part_count} parts")

    with closing(splitter.split(plan.path, plan.filename, plan.part_size)) as parts:
        for part in parts:
            offset = sent_before

            def part_progress(sent: int, _total: int, offset: int = offset) -> None:
                progress(offset + sent, plan.size)

            try:
                document = relay(part.path, part.name, part_progress if progress else None)
            finally:
                part.path.unlink(missing_ok=True)

            records.append(
                persist_record(
                    part.name,
                    part.size,
                    document.file_id,
                    fields,
                    group_id=group_id,
                    part_number=part.number,
                )
            )
            sent_before += part.size
    return records


def upload_file(
    path: Path,
    filename: str,
    size: int,
    metadata: UploadMetadata,
    client: TelegramClient,
) -> list[FileRecord]:
    """Synchronous relay. Failures propagate to the caller, nothing is retried."""
    plan = plan_upload(path, filename, size, client.config.part_size)
    records = execute_plan(plan, metadata, client.send_document)
    logger.info(f"Uploaded {filename} as {len(records)} record(s)")
    return records


def upload_from_url(
    file_url: str,
    filename: str | None,
    metadata: UploadMetadata,
    client: TelegramClient,
) -> list[FileRecord]:
    """Fetch a remote file to the temp dir, then relay it like a local upload."""
    name = safe_filename(filename or PurePath(file_url.split("?", 1)[0]).name)
    if name == "file":
        name = f"download_{int(utcnow().timestamp())}"

    tmp_path = TEMP_DIR / f"url_{uuid.uuid4().hex}"
    try:
        size = client.download_to(file_url, tmp_path)
        plan = plan_upload(tmp_path, name, size, client.config.part_size)
        source_url = file_url if isinstance(plan, SinglePartUpload) else None
        return execute_plan(plan, metadata, client.send_document, file_url=source_url)
    finally:
        tmp_path.unlink(missing_ok=True)


def stage_stream(source, filename: str) -> tuple[Path, int]:
    """Copy a readable binary stream into the durable temp dir."""
    dest = TEMP_DIR / f"tg_{uuid.uuid4().hex}_{safe_filename(filename)}"
    with open(dest, "wb") as out:
        shutil.copyfileobj(source, out, splitter.COPY_BUFFER)
    return dest, dest.stat().st_size


def save_direct_upload(
    token: str,
    telegram_file_id: str,
    file_name: str,
    file_size: int,
    client: TelegramClient,
    verify: bool = True,
) -> FileRecord:
    """Record a file the browser already pushed to Telegram with an upload token."""
    if file_size > client.config.direct_upload_max:
        limit_mb = client.config.direct_upload_max // (1024 * 1024)
        raise ValidationError(f"File size exceeds {limit_mb}MB limit")

    claims = token_service.validate(token)

    if verify:
        try:
            client.verify_file(telegram_file_id)
        except BackendProtocolError as exc:
            raise ValidationError(
                f"File not found on Telegram. {exc.message}", detail=exc.detail
            ) from exc

    filename = safe_filename(file_name)
    fields = build_record_fields(claims.metadata, filename)
    record = persist_record(filename, file_size, telegram_file_id, fields)
    logger.info(f"User {claims.user_id} saved direct upload {filename} as file {record.id}")
    return record


async def stage_request(request, filename: str) -> tuple[Path, int]:
    """Stream a raw request body into the temp dir."""
    tmp = tempfile.NamedTemporaryFile(
        delete=False, dir=str(TEMP_DIR), prefix="tg_", suffix=f"_{safe_filename(filename)}"
    )
    size = 0
    try:
        with tmp:
            async for chunk in request.stream():
                size += len(chunk)
                await run_in_threadpool(tmp.write, chunk)
    except Exception:
        Path(tmp.name).unlink(missing_ok=True)
        raise
    return Path(tmp.name), size


def build_upload_response(records: list[FileRecord], base_url: str) -> UploadResponse:
    first = records[0]
    split = len(records) > 1
    return UploadResponse(
        message=(
            f"File split into {len(records)} parts and uploaded successfully"
            if split
            else "File uploaded successfully"
        ),
        split=split,
        group_id=first.group_id,
        files=[
            UploadedFile(
                id=record.id,
                filename=record.filename,
                size=record.size,
                telegram_file_id=record.telegram_file_id,
                part_number=record.part_number,
                url=f"{base_url.rstrip('/')}/f/{record.id}",
            )
            for record in records
        ],
        expires_at=first.expires_at,
        max_downloads=first.max_downloads,
        password_protected=first.has_password,
    )
