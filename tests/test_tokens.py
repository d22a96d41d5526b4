from dataclasses import replace
from datetime import timedelta

import pytest

from errors import (
    BackendNotConfiguredError,
    ExpiredTokenError,
    InvalidTokenError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from api.files.services import files_service
from api.tokens.services import token_service
from api.upload.dto.upload import UploadMetadata
from api.upload.services import upload_service
from timeutils import utcnow


def test_validate_returns_user_and_metadata(bot_config):
    metadata = UploadMetadata(description="quarterly numbers", tags="finance, q3", max_downloads=5)

    grant = token_service.generate("alice", metadata, bot_config)
    claims = token_service.validate(grant.token)

    assert claims.user_id == "alice"
    assert claims.metadata == metadata
    assert claims.metadata.tags == "finance,q3"
    assert len(grant.token) == 64
    assert grant.expires_in == 30 * 60
    assert grant.upload_url.endswith(f"/bot{bot_config.bot_token}/sendDocument")
    assert grant.chat_id == bot_config.chat_id


def test_token_can_be_validated_again_until_expiry(bot_config):
    grant = token_service.generate("alice", UploadMetadata(), bot_config)

    token_service.validate(grant.token)
    token_service.validate(grant.token)

    status = token_service.get_status(grant.token)
    assert status.used is True
    assert status.used_at is not None
    assert status.expired is False


def test_expired_token_is_rejected_even_after_use(bot_config):
    now = utcnow()
    grant = token_service.generate("alice", UploadMetadata(), bot_config, now=now)
    token_service.validate(grant.token, now=now)

    with pytest.raises(ExpiredTokenError):
        token_service.validate(grant.token, now=now + timedelta(minutes=31))

    assert token_service.get_status(grant.token, now=now + timedelta(minutes=31)).expired


def test_unknown_token():
    with pytest.raises(InvalidTokenError):
        token_service.validate("f" * 64)
    with pytest.raises(NotFoundError):
        token_service.get_status("f" * 64)


def test_daily_limit(bot_config):
    now = utcnow()
    for _ in range(token_service.DAILY_LIMIT):
        token_service.generate("alice", UploadMetadata(), bot_config, now=now)

    with pytest.raises(RateLimitError):
        token_service.generate("alice", UploadMetadata(), bot_config, now=now)

    # Other users have their own allowance
    token_service.generate("bob", UploadMetadata(), bot_config, now=now)


def test_generate_requires_configured_bot(bot_config):
    with pytest.raises(BackendNotConfiguredError):
        token_service.generate("alice", UploadMetadata(), replace(bot_config, bot_token=""))


def test_cleanup_removes_expired_and_old_used_tokens(bot_config):
    now = utcnow()
    old = token_service.generate("alice", UploadMetadata(), bot_config, now=now - timedelta(minutes=45))
    fresh = token_service.generate("alice", UploadMetadata(), bot_config, now=now)

    assert token_service.cleanup_expired(now) == 1

    with pytest.raises(InvalidTokenError):
        token_service.validate(old.token, now=now)
    token_service.validate(fresh.token, now=now)


def test_save_upload_rejects_oversize_before_token_check(client):
    with pytest.raises(ValidationError) as excinfo:
        upload_service.save_direct_upload(
            token="not-a-real-token",
            telegram_file_id="doc-x",
            file_name="big.iso",
            file_size=60 * 1024 * 1024,
            client=client,
        )
    assert "50MB" in excinfo.value.message


def test_save_upload_persists_token_metadata(client, telegram, bot_config):
    telegram.documents["doc-direct"] = ("notes.txt", b"hello")
    grant = token_service.generate(
        "alice", UploadMetadata(password="pw", max_downloads=2, category="docs"), bot_config
    )

    record = upload_service.save_direct_upload(
        token=grant.token,
        telegram_file_id="doc-direct",
        file_name="notes.txt",
        file_size=5,
        client=client,
    )

    stored = files_service.get_file(record.id)
    assert stored.telegram_file_id == "doc-direct"
    assert stored.max_downloads == 2
    assert stored.category == "docs"
    assert stored.has_password and stored.password_hash != "pw"


def test_save_upload_with_unknown_telegram_file(client, bot_config):
    grant = token_service.generate("alice", UploadMetadata(), bot_config)

    with pytest.raises(ValidationError):
        upload_service.save_direct_upload(
            token=grant.token,
            telegram_file_id="doc-missing",
            file_name="notes.txt",
            file_size=5,
            client=client,
        )
    assert files_service.list_files() == []


def test_save_upload_accepts_file_too_big_for_lookup(client, telegram, bot_config):
    telegram.too_big.add("doc-huge")
    grant = token_service.generate("alice", UploadMetadata(), bot_config)

    record = upload_service.save_direct_upload(
        token=grant.token,
        telegram_file_id="doc-huge",
        file_name="movie.mkv",
        file_size=45 * 1024 * 1024,
        client=client,
    )
    assert record.telegram_file_id == "doc-huge"
