"""Tokens controller: Direct browser-to-Telegram upload handshake."""

from fastapi import APIRouter, Depends, status

from auth import require_user
from api.telegram.services.telegram_client import TelegramClient, get_telegram_client
from api.tokens.dto.token import (
    SaveUploadRequest,
    SaveUploadResponse,
    TokenGrant,
    UploadTokenStatus,
)
from api.tokens.services import token_service
from api.upload.dto.upload import UploadMetadata
from api.upload.services import upload_service

router = APIRouter(prefix="/api", tags=["Tokens"])


@router.post("/request-upload", response_model=TokenGrant)
def request_upload(
    metadata: UploadMetadata | None = None,
    user: str = Depends(require_user),
    client: TelegramClient = Depends(get_telegram_client),
):
    return token_service.generate(user, metadata or UploadMetadata(), client.config)


@router.post(
    "/save-upload",
    response_model=SaveUploadResponse,
    status_code=status.HTTP_201_CREATED,
)
def save_upload(
    body: SaveUploadRequest,
    client: TelegramClient = Depends(get_telegram_client),
):
    """Record a file the client already sent to Telegram. The token is the credential."""
    record = upload_service.save_direct_upload(
        token=body.token,
        telegram_file_id=body.file_id,
        file_name=body.file_name,
        file_size=body.file_size,
        client=client,
    )
    return SaveUploadResponse(
        file_id=record.id,
        message="File uploaded successfully",
        file_name=record.filename,
        file_size=record.size,
        telegram_file_id=record.telegram_file_id,
    )


@router.get("/upload-status/{token}", response_model=UploadTokenStatus)
def upload_status(token: str):
    return token_service.get_status(token)
