"""Pending upload Data Transfer Objects."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from api.upload.dto.upload import UploadMetadata


class PendingStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class PendingUpload(BaseModel):
    id: int
    file_path: str
    filename: str
    size: int
    status: PendingStatus
    progress: int
    error_message: str | None = None
    retry_count: int
    max_retries: int
    metadata: UploadMetadata
    file_ids: list[int] = []
    created_at: datetime
    updated_at: datetime


class PendingUploadAccepted(BaseModel):
    pending_id: int
    status: PendingStatus
    message: str


class PendingUploadStatus(BaseModel):
    pending_id: int
    filename: str
    status: PendingStatus
    progress: int
    error_message: str | None = None
    retry_count: int
    file_ids: list[int] = []
