"""Upload token Data Transfer Objects."""

from datetime import datetime

from pydantic import BaseModel

from api.upload.dto.upload import UploadMetadata


class UploadToken(BaseModel):
    token: str
    user_id: str
    metadata: UploadMetadata
    used: bool
    used_at: datetime | None = None
    expires_at: datetime
    created_at: datetime


class TokenGrant(BaseModel):
    token: str
    expires_at: datetime
    expires_in: int
    upload_url: str
    bot_token: str
    chat_id: str
    max_file_size: int
    user_id: str


class TokenClaims(BaseModel):
    user_id: str
    metadata: UploadMetadata


class UploadTokenStatus(BaseModel):
    used: bool
    expired: bool
    expires_at: datetime
    created_at: datetime
    used_at: datetime | None = None


class SaveUploadRequest(BaseModel):
    token: str
    file_id: str
    file_name: str
    file_size: int


class SaveUploadResponse(BaseModel):
    file_id: int
    message: str
    file_name: str
    file_size: int
    telegram_file_id: str
