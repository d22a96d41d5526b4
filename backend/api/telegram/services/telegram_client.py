"""Telegram Bot API client.

Sends documents, resolves file paths and opens download streams. The client
never retries: it raises ``BackendTransportError`` when Telegram cannot be
reached and ``BackendProtocolError`` when Telegram answers with a failure, and
lets the caller decide what to do.
"""

import mimetypes
import os
from pathlib import Path
from typing import Callable

import httpx

from config import BOT_CONFIG, BotConfig
from errors import (
    BackendNotConfiguredError,
    BackendProtocolError,
    BackendTransportError,
    FileTooBigError,
)
from api.telegram.dto.telegram import BackendDocument
from logging_config import get_logger

logger = get_logger("services.telegram")

ProgressCallback = Callable[[int, int], None]

GET_FILE_TIMEOUT = 15.0
TOO_BIG_MARKER = "file is too big"


class ProgressReader:
    """File wrapper that reports how much of it has been read.

    httpx pulls multipart file bodies through ``read``, so bytes read are
    bytes handed to the socket. The callback only fires when the whole
    percentage changes.
    """

    def __init__(self, fileobj, total: int, callback: ProgressCallback):
        self._fileobj = fileobj
        self._total = total
        self._callback = callback
        self._sent = 0
        self._last_percent = -1

    def read(self, size: int = -1) -> bytes:
        chunk = self._fileobj.read(size)
        if chunk:
            self._sent += len(chunk)
            self._report()
        return chunk

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        position = self._fileobj.seek(offset, whence)
        if whence == os.SEEK_SET:
            self._sent = position
        return position

    def tell(self) -> int:
        return self._fileobj.tell()

    def fileno(self) -> int:
        return self._fileobj.fileno()

    def _report(self) -> None:
        if self._total <= 0:
            return
        percent = min(100, self._sent * 100 // self._total)
        if percent != self._last_percent:
            self._last_percent = percent
            self._callback(min(self._sent, self._total), self._total)


class TelegramClient:
    def __init__(self, config: BotConfig, transport: httpx.BaseTransport | None = None):
        self.config = config
        self._http = httpx.Client(
            timeout=httpx.Timeout(config.timeout, connect=config.connect_timeout),
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    # URLs

    def _method_url(self, method: str) -> str:
        return f"{self.config.api_base}/bot{self.config.bot_token}/{method}"

    @property
    def upload_url(self) -> str:
        return self._method_url("sendDocument")

    def file_url(self, file_path: str) -> str:
        return f"{self.config.api_base}/file/bot{self.config.bot_token}/{file_path}"

    def _redact(self, text: str) -> str:
        if self.config.bot_token:
            return text.replace(self.config.bot_token, "***")
        return text

    def _require_config(self) -> None:
        if not self.config.is_configured:
            raise BackendNotConfiguredError(
                "Telegram bot is not configured. Set the bot token and chat ID."
            )

    # Bot API calls

    def send_document(
        self,
        path: str | Path,
        filename: str,
        progress: ProgressCallback | None = None,
    ) -> BackendDocument:
        """Upload one file to the configured chat."""
        self._require_config()
        content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        total = os.path.getsize(path)

        with open(path, "rb") as fh:
            body = ProgressReader(fh, total, progress) if progress else fh
            try:
                response = self._http.post(
                    self.upload_url,
                    data={"chat_id": self.config.chat_id},
                    files={"document": (filename, body, content_type)},
                )
            except httpx.TransportError as exc:
                detail = self._redact(str(exc)) or type(exc).__name__
                logger.warning(f"sendDocument transport error for {filename}: {detail}")
                raise BackendTransportError(f"Could not reach Telegram: {detail}") from exc

        payload = self._parse(response, "sendDocument")
        result = payload.get("result") or {}
        document = result.get("document") or result.get("animation") or {}
        if not document.get("file_id"):
            raise BackendProtocolError(
                "Telegram did not return a document id",
                detail=self._redact(response.text[:500]),
            )
        return BackendDocument(
            file_id=document["file_id"],
            file_size=document.get("file_size"),
            file_name=document.get("file_name"),
        )

    def get_file_path(self, file_id: str) -> str:
        """Resolve a file id into the path used by the file download endpoint."""
        self._require_config()
        try:
            response = self._http.get(
                self._method_url("getFile"),
                params={"file_id": file_id},
                timeout=GET_FILE_TIMEOUT,
            )
        except httpx.TransportError as exc:
            detail = self._redact(str(exc)) or type(exc).__name__
            raise BackendTransportError(f"Failed to get file info from Telegram: {detail}") from exc

        payload = self._parse(response, "getFile")
        file_path = (payload.get("result") or {}).get("file_path")
        if not file_path:
            raise BackendProtocolError("Telegram did not return a file path")
        return file_path

    def verify_file(self, file_id: str) -> bool:
        """Best-effort check that Telegram knows ``file_id``.

        Files above the getFile size limit cannot be looked up but do exist,
        so that particular refusal counts as success.
        """
        try:
            self.get_file_path(file_id)
        except FileTooBigError:
            logger.info(f"File {file_id} too big for getFile, assuming it exists")
        return True

    def open_stream(self, url: str) -> httpx.Response:
        """Start a streamed GET. The caller must close the response."""
        request = self._http.build_request("GET", url)
        try:
            response = self._http.send(request, stream=True, follow_redirects=True)
        except httpx.TransportError as exc:
            detail = self._redact(str(exc)) or type(exc).__name__
            raise BackendTransportError(f"Download from Telegram failed: {detail}") from exc

        if response.status_code >= 400:
            response.close()
            raise BackendProtocolError(
                f"Telegram refused the download (HTTP {response.status_code})",
                error_code=response.status_code,
                transient=response.status_code >= 500,
            )
        return response

    def download_to(self, url: str, dest: Path, max_bytes: int | None = None) -> int:
        """Fetch an arbitrary URL to disk. Returns the byte count."""
        size = 0
        try:
            with self._http.stream("GET", url, follow_redirects=True) as response:
                if response.status_code >= 400:
                    raise BackendProtocolError(
                        f"Remote server answered HTTP {response.status_code}",
                        error_code=response.status_code,
                    )
                with open(dest, "wb") as out:
                    for chunk in response.iter_bytes():
                        size += len(chunk)
                        if max_bytes and size > max_bytes:
                            raise BackendProtocolError("Remote file is too large")
                        out.write(chunk)
        except httpx.TransportError as exc:
            raise BackendTransportError(f"Failed to download file from URL: {exc}") from exc
        return size

    def _parse(self, response: httpx.Response, method: str) -> dict:
        try:
            payload = response.json()
        except ValueError:
            raise BackendProtocolError(
                f"Invalid response from Telegram {method} (HTTP {response.status_code})",
                detail=self._redact(response.text[:500]),
                error_code=response.status_code,
                transient=response.status_code >= 500,
            )

        if not isinstance(payload, dict) or not payload.get("ok"):
            payload = payload if isinstance(payload, dict) else {}
            description = payload.get("description") or "Unknown error"
            error_code = payload.get("error_code") or response.status_code
            logger.warning(f"Telegram {method} failed ({error_code}): {description}")
            if error_code == 400 and TOO_BIG_MARKER in description.lower():
                raise FileTooBigError(
                    f"Telegram says: {description}", detail=description, error_code=error_code
                )
            raise BackendProtocolError(
                f"Telegram API error: {description}",
                detail=description,
                error_code=error_code,
                transient=error_code == 429 or error_code >= 500,
            )
        return payload


_client: TelegramClient | None = None


def get_telegram_client() -> TelegramClient:
    """FastAPI dependency returning the process-wide client."""
    global _client
    if _client is None:
        _client = TelegramClient(BOT_CONFIG)
    return _client
