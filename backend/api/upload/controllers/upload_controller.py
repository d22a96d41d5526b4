"""Upload controller: Relays uploads to Telegram."""

from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from starlette.concurrency import run_in_threadpool

from auth import require_user
from api.telegram.services.telegram_client import TelegramClient, get_telegram_client
from api.upload.dto.upload import UploadMetadata, UploadResponse, UrlUploadRequest
from api.upload.services import upload_service
from logging_config import get_logger

logger = get_logger("controllers.upload")

router = APIRouter(tags=["Upload"])


def metadata_form(
    category: str | None = Form(None),
    tags: str | None = Form(None),
    description: str | None = Form(None),
    password: str | None = Form(None),
    expiration_date: str | None = Form(None),
    max_downloads: str | None = Form(None),
) -> UploadMetadata:
    """Upload metadata from multipart form fields."""
    return upload_service.parse_metadata(
        category=category,
        tags=tags,
        description=description,
        password=password,
        expiration_date=expiration_date,
        max_downloads=max_downloads,
    )


def metadata_headers(request: Request) -> UploadMetadata:
    """Upload metadata from X-* headers, for curl-style PUT uploads."""
    headers = request.headers
    return upload_service.parse_metadata(
        category=headers.get("X-Category"),
        tags=headers.get("X-Tags"),
        description=headers.get("X-Description"),
        password=headers.get("X-Password"),
        expiration_date=headers.get("X-Expires"),
        max_downloads=headers.get("X-Max-Downloads"),
    )


def _relay_staged(
    path: Path,
    filename: str,
    size: int,
    metadata: UploadMetadata,
    client: TelegramClient,
):
    try:
        return upload_service.upload_file(path, filename, size, metadata, client)
    finally:
        path.unlink(missing_ok=True)


@router.post("/api/upload", response_model=UploadResponse)
def upload_form(
    request: Request,
    file: UploadFile = File(...),
    metadata: UploadMetadata = Depends(metadata_form),
    user: str = Depends(require_user),
    client: TelegramClient = Depends(get_telegram_client),
):
    """Multipart upload. Blocks until Telegram has every part."""
    filename = upload_service.safe_filename(file.filename)
    path, size = upload_service.stage_stream(file.file, filename)
    logger.info(f"User {user} uploading {filename} ({size} bytes)")
    records = _relay_staged(path, filename, size, metadata, client)
    return upload_service.build_upload_response(records, str(request.base_url))


@router.post("/api/upload/url", response_model=UploadResponse)
def upload_url(
    request: Request,
    body: UrlUploadRequest,
    user: str = Depends(require_user),
    client: TelegramClient = Depends(get_telegram_client),
):
    """Fetch a remote file and relay it."""
    logger.info(f"User {user} uploading from {body.file_url}")
    records = upload_service.upload_from_url(body.file_url, body.filename, body.metadata, client)
    return upload_service.build_upload_response(records, str(request.base_url))


@router.put("/{filename:path}", response_model=UploadResponse)
async def upload_put(
    request: Request,
    filename: str,
    metadata: UploadMetadata = Depends(metadata_headers),
    user: str = Depends(require_user),
    client: TelegramClient = Depends(get_telegram_client),
):
    """Upload a file via streaming PUT request."""
    filename = upload_service.safe_filename(filename)
    path, size = await upload_service.stage_request(request, filename)
    logger.info(f"User {user} uploading {filename} ({size} bytes) via PUT")
    records = await run_in_threadpool(_relay_staged, path, filename, size, metadata, client)
    return upload_service.build_upload_response(records, str(request.base_url))
