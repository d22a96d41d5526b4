"""Access control Data Transfer Objects."""

from enum import Enum

from pydantic import BaseModel

from api.files.dto.file import FileRecord


class DenialReason(str, Enum):
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    LIMIT_REACHED = "limit_reached"
    PASSWORD_REQUIRED = "password_required"
    INCORRECT_PASSWORD = "incorrect_password"


DENIAL_MESSAGES = {
    DenialReason.NOT_FOUND: "File not found",
    DenialReason.INACTIVE: "File is inactive",
    DenialReason.EXPIRED: "File has expired",
    DenialReason.LIMIT_REACHED: "Download limit reached",
    DenialReason.PASSWORD_REQUIRED: "Password required",
    DenialReason.INCORRECT_PASSWORD: "Incorrect password",
}


class AccessDecision(BaseModel):
    allowed: bool
    reason: DenialReason | None = None
    file: FileRecord | None = None

    @property
    def message(self) -> str:
        if self.allowed:
            return "Access granted"
        return DENIAL_MESSAGES[self.reason]

    @property
    def wants_password(self) -> bool:
        """The client should re-prompt rather than give up."""
        return self.reason in (
            DenialReason.PASSWORD_REQUIRED,
            DenialReason.INCORRECT_PASSWORD,
        )
