"""Upload Data Transfer Objects."""

from datetime import datetime

from pydantic import BaseModel, field_validator


class UploadMetadata(BaseModel):
    """Caller-supplied attributes that end up on every stored record."""

    category: str | None = None
    tags: str | None = None
    description: str | None = None
    password: str | None = None
    expiration_date: str | None = None
    max_downloads: int | None = None

    @field_validator("category", "description", "password", "expiration_date", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _join_tags(cls, value):
        if value is None:
            return None
        if isinstance(value, (list, tuple)):
            value = ",".join(str(tag) for tag in value)
        tags = [tag.strip() for tag in str(value).split(",") if tag.strip()]
        return ",".join(tags) or None

    @field_validator("max_downloads", mode="before")
    @classmethod
    def _coerce_limit(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        value = int(value)
        return value if value > 0 else None


class UploadedFile(BaseModel):
    id: int
    filename: str
    size: int
    telegram_file_id: str
    part_number: int | None = None
    url: str


class UploadResponse(BaseModel):
    message: str
    split: bool = False
    group_id: str | None = None
    files: list[UploadedFile]
    expires_at: datetime | None = None
    max_downloads: int | None = None
    password_protected: bool = False


class UrlUploadRequest(BaseModel):
    file_url: str
    filename: str | None = None
    metadata: UploadMetadata = UploadMetadata()
