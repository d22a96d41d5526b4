"""Download service: Gate check, Telegram URL resolution, and streaming."""

from typing import Iterator

import httpx

from cache import telegram_paths
from errors import BackendProtocolError, FileTooBigError
from api.access.services import access_service
from api.download.dto.download import DownloadDenied, DownloadTicket
from api.download.repositories import download_repository
from api.files.dto.file import FileRecord
from api.files.services import files_service
from api.telegram.services.telegram_client import TelegramClient
from logging_config import get_logger

logger = get_logger("services.download")

CHUNK_SIZE = 8192  # 8KB


def resolve_download_url(record: FileRecord, client: TelegramClient) -> str:
    """Where Telegram serves the bytes for ``record``."""
    file_path = telegram_paths.get(record.telegram_file_id)
    if file_path is None:
        try:
            file_path = client.get_file_path(record.telegram_file_id)
        except FileTooBigError:
            if record.file_url:
                logger.info(f"File {record.id} too big for getFile, using stored URL")
                return record.file_url
            raise BackendProtocolError(
                "File is too large to download through the Telegram Bot API"
            )
        telegram_paths.set(record.telegram_file_id, file_path)
    return client.file_url(file_path)


def prepare_download(
    file_id: int,
    client: TelegramClient,
    password: str | None = None,
    ip_address: str = "Unknown",
    user_agent: str = "",
    user_id: str | None = None,
) -> DownloadTicket:
    """Run the access gate and resolve the URL. Raises DownloadDenied."""
    decision = access_service.check_access(
        file_id,
        password=password,
        ip_address=ip_address,
        user_agent=user_agent,
        user_id=user_id,
    )
    if not decision.allowed:
        raise DownloadDenied(decision)

    return DownloadTicket(
        file=decision.file,
        url=resolve_download_url(decision.file, client),
        ip_address=ip_address,
        user_agent=user_agent,
        user_id=user_id,
    )


def _mark_started(ticket: DownloadTicket) -> None:
    files_service.record_download(ticket.file.id)
    download_repository.append(
        file_id=ticket.file.id,
        ip_address=ticket.ip_address,
        user_agent=ticket.user_agent,
        user_id=ticket.user_id,
    )


def iter_download(
    ticket: DownloadTicket,
    response: httpx.Response,
    chunk_size: int = CHUNK_SIZE,
) -> Iterator[bytes]:
    """Relay the upstream body chunk by chunk.

    The download is counted once the first chunk arrives. A failure midway
    ends the stream; the client sees a truncated body.
    """
    started = False
    try:
        # iter_bytes(chunk_size) would hold back a short tail when upstream fails
        for piece in response.iter_bytes():
            for offset in range(0, len(piece), chunk_size):
                if not started:
                    started = True
                    _mark_started(ticket)
                yield piece[offset:offset + chunk_size]
        if not started:
            _mark_started(ticket)
    except httpx.HTTPError as exc:
        logger.error(f"Streaming file {ticket.file.id} failed midway: {exc}")
    finally:
        response.close()


def open_download(ticket: DownloadTicket, client: TelegramClient) -> httpx.Response:
    return client.open_stream(ticket.url)
