"""Access service: The gate every download passes through.

Checks run in a fixed order and the first failure wins:

1. the record exists
2. the record is active
3. the record has not expired (expired records are deactivated on the spot)
4. the download limit has not been reached
5. the password matches, when one is set

A pass counts one access with a conditional update and appends an access log
entry. ``download_count`` is not touched here; the download proxy bumps it
once bytes actually flow.
"""

from datetime import datetime

from werkzeug.security import check_password_hash, generate_password_hash

from api.access.dto.access import AccessDecision, DenialReason
from api.access.repositories import access_log_repository
from api.files.dto.file import FileRecord
from api.files.services import files_service
from logging_config import get_logger
from timeutils import as_utc, utcnow

logger = get_logger("services.access")


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(record: FileRecord, password: str | None) -> bool:
    if not record.password_hash:
        return True
    if not password:
        return False
    return check_password_hash(record.password_hash, password)


def is_expired(record: FileRecord, now: datetime | None = None) -> bool:
    if record.expires_at is None:
        return False
    return (now or utcnow()) > as_utc(record.expires_at)


def check_expiration(record: FileRecord, now: datetime | None = None) -> DenialReason | None:
    """Expiration step of the gate. Safe to call repeatedly on the same record."""
    if not is_expired(record, now):
        return None
    if record.is_active:
        files_service.deactivate_file(record.id)
    return DenialReason.EXPIRED


def limit_reached(record: FileRecord) -> bool:
    if record.max_downloads is None or record.max_downloads <= 0:
        return False
    return record.access_count >= record.max_downloads


def evaluate(
    record: FileRecord | None,
    password: str | None = None,
    now: datetime | None = None,
) -> AccessDecision:
    """Run the policy checks without recording anything."""
    if record is None:
        return AccessDecision(allowed=False, reason=DenialReason.NOT_FOUND)

    if not record.is_active:
        # An expired record keeps reporting "expired" after auto-deactivation
        reason = DenialReason.EXPIRED if is_expired(record, now) else DenialReason.INACTIVE
        return AccessDecision(allowed=False, reason=reason, file=record)

    expired = check_expiration(record, now)
    if expired:
        return AccessDecision(allowed=False, reason=expired, file=record)

    if limit_reached(record):
        return AccessDecision(allowed=False, reason=DenialReason.LIMIT_REACHED, file=record)

    if record.password_hash:
        if not password:
            return AccessDecision(
                allowed=False, reason=DenialReason.PASSWORD_REQUIRED, file=record
            )
        if not verify_password(record, password):
            return AccessDecision(
                allowed=False, reason=DenialReason.INCORRECT_PASSWORD, file=record
            )

    return AccessDecision(allowed=True, file=record)


def check_access(
    file_id: int,
    password: str | None = None,
    ip_address: str = "Unknown",
    user_agent: str = "",
    user_id: str | None = None,
    record: FileRecord | None = None,
) -> AccessDecision:
    """Evaluate the gate for one download attempt and record a pass."""
    if record is None:
        record = files_service.get_file_cached(file_id)

    decision = evaluate(record, password)
    if not decision.allowed:
        logger.info(f"Access to file {file_id} denied: {decision.reason.value}")
        return decision

    if not files_service.record_access(file_id):
        # Another request took the last slot between the check and the update
        logger.info(f"Access to file {file_id} denied: limit reached under contention")
        return AccessDecision(allowed=False, reason=DenialReason.LIMIT_REACHED, file=record)

    access_log_repository.append(
        file_id=file_id,
        action="download",
        ip_address=ip_address,
        user_agent=user_agent,
        user_id=user_id,
        extra_data={
            "ip": ip_address,
            "user_agent": user_agent,
            "has_password": bool(password),
        },
    )
    return decision
