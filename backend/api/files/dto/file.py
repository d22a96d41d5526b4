"""File Data Transfer Objects."""

from datetime import datetime

from pydantic import BaseModel


class FileRecord(BaseModel):
    """Full stored row, including the secrets the gate needs."""

    id: int
    filename: str
    size: int
    telegram_file_id: str
    file_url: str | None = None
    category: str | None = None
    tags: str | None = None
    description: str | None = None
    group_id: str | None = None
    part_number: int | None = None
    expires_at: datetime | None = None
    password_hash: str | None = None
    max_downloads: int | None = None
    access_count: int = 0
    download_count: int = 0
    is_active: bool = True
    created_at: datetime

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)


class FileResponse(BaseModel):
    id: int
    filename: str
    size: int
    telegram_file_id: str
    category: str | None = None
    tags: str | None = None
    description: str | None = None
    group_id: str | None = None
    part_number: int | None = None
    expires_at: datetime | None = None
    has_password: bool = False
    max_downloads: int | None = None
    access_count: int
    download_count: int
    is_active: bool
    created_at: datetime

    @classmethod
    def from_record(cls, record: FileRecord) -> "FileResponse":
        return cls(
            has_password=record.has_password,
            **record.model_dump(exclude={"password_hash", "file_url"}),
        )


class AccessLogResponse(BaseModel):
    id: int
    file_id: int
    user_id: str | None = None
    action: str
    ip_address: str
    user_agent: str
    created_at: datetime
    extra_data: dict | None = None


class DownloadLinkResponse(BaseModel):
    file_id: int
    url: str
