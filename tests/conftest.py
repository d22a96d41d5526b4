import os
import re
import tempfile
from dataclasses import replace
from itertools import count

# Configuration is read at import time, so it has to be in place first.
os.environ["DATA_DIR"] = tempfile.mkdtemp(prefix="tgdrop-tests-")
os.environ["TGDROP_BOT_TOKEN"] = "123456:TEST-TOKEN"
os.environ["TGDROP_CHAT_ID"] = "-1001234567890"
os.environ["TGDROP_SECRET_KEY"] = "test-secret"
os.environ["TGDROP_USERS"] = "alice:wonderland"
os.environ["TGDROP_ADMIN_USER"] = "admin"
os.environ["TGDROP_ADMIN_PASS"] = "hunter2"

import httpx
import pytest

import cache
from config import BOT_CONFIG
from database import Base, engine, init_db
from api.telegram.services.telegram_client import TelegramClient

API_BASE = "https://telegram.test"

USER_HEADERS = {"X-Auth-User": "alice", "X-Auth-Pass": "wonderland"}
ADMIN_HEADERS = {"X-Admin-User": "admin", "X-Admin-Pass": "hunter2"}


def _multipart_fields(request: httpx.Request) -> dict[str, tuple[str | None, bytes]]:
    """name -> (filename, body) for a multipart/form-data request."""
    boundary = re.search(r"boundary=([^;]+)", request.headers["content-type"]).group(1)
    fields = {}
    for chunk in request.content.split(b"--" + boundary.encode()):
        if b"\r\n\r\n" not in chunk:
            continue
        head, body = chunk.split(b"\r\n\r\n", 1)
        head = head.decode()
        name = re.search(r'name="([^"]*)"', head).group(1)
        filename = re.search(r'filename="([^"]*)"', head)
        fields[name] = (filename.group(1) if filename else None, body[: -len(b"\r\n")])
    return fields


class FakeTelegram:
    """In-memory Bot API behind httpx.MockTransport."""

    def __init__(self):
        self.documents: dict[str, tuple[str, bytes]] = {}
        self.sent: list[tuple[str, int]] = []
        self.failures: list[httpx.Response | Exception] = []
        self.too_big: set[str] = set()
        self.get_file_calls = 0
        self._ids = count(1)

    def fail_next(self, *failures) -> None:
        self.failures.extend(failures)

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/sendDocument"):
            if self.failures:
                failure = self.failures.pop(0)
                if isinstance(failure, Exception):
                    raise failure
                return failure
            return self._send_document(request)
        if path.endswith("/getFile"):
            return self._get_file(request)
        if "/file/bot" in path:
            file_id = path.rsplit("/", 1)[-1]
            if file_id not in self.documents:
                return httpx.Response(404)
            return httpx.Response(200, content=self.documents[file_id][1])
        return httpx.Response(404, json={"ok": False, "error_code": 404, "description": "Not Found"})

    def _send_document(self, request: httpx.Request) -> httpx.Response:
        fields = _multipart_fields(request)
        filename, body = fields["document"]
        file_id = f"doc{next(self._ids)}"
        self.documents[file_id] = (filename, body)
        self.sent.append((filename, len(body)))
        return httpx.Response(
            200,
            json={
                "ok": True,
                "result": {
                    "message_id": len(self.sent),
                    "document": {
                        "file_id": file_id,
                        "file_name": filename,
                        "file_size": len(body),
                    },
                },
            },
        )

    def _get_file(self, request: httpx.Request) -> httpx.Response:
        self.get_file_calls += 1
        file_id = request.url.params["file_id"]
        if file_id in self.too_big:
            return httpx.Response(
                400,
                json={"ok": False, "error_code": 400, "description": "Bad Request: file is too big"},
            )
        if file_id not in self.documents:
            return httpx.Response(
                400,
                json={"ok": False, "error_code": 400, "description": "Bad Request: invalid file_id"},
            )
        return httpx.Response(
            200,
            json={"ok": True, "result": {"file_id": file_id, "file_path": f"documents/{file_id}"}},
        )


def api_error(code: int, description: str) -> httpx.Response:
    return httpx.Response(code, json={"ok": False, "error_code": code, "description": description})


@pytest.fixture(scope="session", autouse=True)
def _schema():
    init_db()
    yield


@pytest.fixture(autouse=True)
def _clean_state():
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    cache.file_records.clear()
    cache.telegram_paths.clear()
    yield


@pytest.fixture
def telegram():
    return FakeTelegram()


@pytest.fixture
def bot_config():
    return replace(BOT_CONFIG, api_base=API_BASE)


@pytest.fixture
def client(telegram, bot_config):
    tg_client = TelegramClient(bot_config, transport=httpx.MockTransport(telegram.handler))
    yield tg_client
    tg_client.close()


@pytest.fixture
def make_file(tmp_path):
    def _make(name: str, size: int) -> tuple:
        path = tmp_path / name
        data = (bytes(range(251)) * (size // 251 + 1))[:size]
        path.write_bytes(data)
        return path, data

    return _make


@pytest.fixture
def make_client(telegram, bot_config):
    """TelegramClient factory sharing the fake, e.g. with a smaller part size."""
    clients = []

    def _make(**overrides) -> TelegramClient:
        tg_client = TelegramClient(
            replace(bot_config, **overrides),
            transport=httpx.MockTransport(telegram.handler),
        )
        clients.append(tg_client)
        return tg_client

    yield _make
    for tg_client in clients:
        tg_client.close()
