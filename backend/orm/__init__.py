"""Central ORM module: Imports all models for Alembic metadata discovery."""

from api.access.orm import AccessLogModel
from api.download.orm import DownloadEventModel
from api.files.orm import FileModel
from api.pending.orm import PendingUploadModel
from api.tokens.orm import UploadTokenModel

__all__ = [
    "AccessLogModel",
    "DownloadEventModel",
    "FileModel",
    "PendingUploadModel",
    "UploadTokenModel",
]
