"""Pending upload controller: Queue an upload and poll its progress."""

from fastapi import APIRouter, Depends, File, UploadFile, status

from auth import require_user
from api.pending.dto.pending import PendingUploadAccepted, PendingUploadStatus
from api.pending.services import pending_service
from api.pending.worker import UploadWorker, get_upload_worker
from api.telegram.services.telegram_client import TelegramClient, get_telegram_client
from api.upload.controllers.upload_controller import metadata_form
from api.upload.dto.upload import UploadMetadata

router = APIRouter(prefix="/api/upload/async", tags=["Upload"])


@router.post("", response_model=PendingUploadAccepted, status_code=status.HTTP_202_ACCEPTED)
def upload_async(
    file: UploadFile = File(...),
    metadata: UploadMetadata = Depends(metadata_form),
    user: str = Depends(require_user),
    worker: UploadWorker = Depends(get_upload_worker),
    client: TelegramClient = Depends(get_telegram_client),
):
    return pending_service.enqueue_upload(
        file.file,
        file.filename,
        metadata,
        worker,
        max_retries=client.config.max_retries,
    )


@router.get("/{pending_id}", response_model=PendingUploadStatus)
def upload_async_status(pending_id: int, user: str = Depends(require_user)):
    return pending_service.get_pending_status(pending_id)
