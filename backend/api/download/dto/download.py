"""Download Data Transfer Objects."""

from dataclasses import dataclass

from api.access.dto.access import AccessDecision
from api.files.dto.file import FileRecord


@dataclass(frozen=True)
class DownloadTicket:
    """An approved download: which record, and where its bytes live."""

    file: FileRecord
    url: str
    ip_address: str
    user_agent: str
    user_id: str | None = None


class DownloadDenied(Exception):
    def __init__(self, decision: AccessDecision):
        super().__init__(decision.message)
        self.decision = decision
