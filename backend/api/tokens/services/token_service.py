"""Token service: One-time tokens for direct browser-to-Telegram uploads.

The browser asks for a token, posts the file straight to the Bot API with the
credentials in the grant, then calls save-upload with the token and the
Telegram file id. The bot token is handed to the client in this flow.

A token stays valid for reuse until it expires so that a client retrying
save-upload is not locked out; ``used`` only records the first validation.
"""

import secrets
from datetime import datetime, timedelta

from config import BotConfig
from errors import (
    BackendNotConfiguredError,
    ExpiredTokenError,
    InvalidTokenError,
    NotFoundError,
    RateLimitError,
)
from api.tokens.dto.token import TokenClaims, TokenGrant, UploadTokenStatus
from api.tokens.repositories import token_repository
from api.upload.dto.upload import UploadMetadata
from logging_config import get_logger
from timeutils import as_utc, start_of_local_day, utcnow

logger = get_logger("services.tokens")

TOKEN_TTL = timedelta(minutes=30)
DAILY_LIMIT = 100
LAZY_CLEANUP_GRACE = timedelta(hours=1)
USED_TOKEN_TTL = timedelta(hours=24)


def generate(
    user_id: str,
    metadata: UploadMetadata,
    config: BotConfig,
    now: datetime | None = None,
) -> TokenGrant:
    if not config.is_configured:
        raise BackendNotConfiguredError(
            "Telegram bot is not configured. Please set bot token and chat ID."
        )

    now = now or utcnow()
    token_repository.delete_expired_before(now - LAZY_CLEANUP_GRACE)

    issued_today = token_repository.count_created_since(user_id, start_of_local_day(now))
    if issued_today >= DAILY_LIMIT:
        logger.info(f"User {user_id} hit the daily token limit")
        raise RateLimitError(
            f"You have exceeded the daily upload limit ({DAILY_LIMIT} files/day)"
        )

    token = secrets.token_hex(32)
    expires_at = now + TOKEN_TTL
    token_repository.create(
        token=token,
        user_id=user_id,
        metadata=metadata,
        expires_at=expires_at,
        created_at=now,
    )

    return TokenGrant(
        token=token,
        expires_at=expires_at,
        expires_in=int(TOKEN_TTL.total_seconds()),
        upload_url=f"{config.api_base}/bot{config.bot_token}/sendDocument",
        bot_token=config.bot_token,
        chat_id=config.chat_id,
        max_file_size=config.direct_upload_max,
        user_id=user_id,
    )


def validate(token: str, now: datetime | None = None) -> TokenClaims:
    record = token_repository.get(token)
    if record is None:
        raise InvalidTokenError("Invalid upload token")

    now = now or utcnow()
    if as_utc(record.expires_at) < now:
        raise ExpiredTokenError("Upload token has expired")

    if not record.used:
        token_repository.mark_used(token, now)

    return TokenClaims(user_id=record.user_id, metadata=record.metadata)


def get_status(token: str, now: datetime | None = None) -> UploadTokenStatus:
    record = token_repository.get(token)
    if record is None:
        raise NotFoundError("Invalid token")

    return UploadTokenStatus(
        used=record.used,
        expired=as_utc(record.expires_at) < (now or utcnow()),
        expires_at=record.expires_at,
        created_at=record.created_at,
        used_at=record.used_at,
    )


def cleanup_expired(now: datetime | None = None) -> int:
    deleted = token_repository.delete_stale(now or utcnow(), USED_TOKEN_TTL)
    if deleted:
        logger.info(f"Cleaned up {deleted} expired/used token(s)")
    return deleted
