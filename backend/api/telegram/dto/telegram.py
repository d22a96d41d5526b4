"""Telegram Bot API Data Transfer Objects."""

from pydantic import BaseModel


class BackendDocument(BaseModel):
    """What sendDocument hands back for a stored file."""

    file_id: str
    file_size: int | None = None
    file_name: str | None = None
