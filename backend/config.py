"""Application configuration."""

import os
from dataclasses import dataclass
from pathlib import Path

DATA_DIR = Path(os.environ.get("DATA_DIR", str(Path(__file__).parent.parent / "data")))
DATA_DIR.mkdir(parents=True, exist_ok=True)

# Durable staging area for queued uploads and split parts
TEMP_DIR = DATA_DIR / "tmp"
TEMP_DIR.mkdir(parents=True, exist_ok=True)

DATABASE_URL = os.environ.get("TGDROP_DATABASE_URL", f"sqlite:///{DATA_DIR}/tgdrop.db")

# Admin authentication
TGDROP_ADMIN_USER = os.environ.get("TGDROP_ADMIN_USER", "").strip()
TGDROP_ADMIN_PASS = os.environ.get("TGDROP_ADMIN_PASS", "").strip()
ADMIN_ENABLED = bool(TGDROP_ADMIN_USER and TGDROP_ADMIN_PASS)

# Uploader accounts, "alice:secret,bob:hunter2"
TGDROP_USERS = os.environ.get("TGDROP_USERS", "").strip()

# Signs session cookies and download links
SECRET_KEY = os.environ.get("TGDROP_SECRET_KEY", "").strip()

LOG_LEVEL = os.environ.get("TGDROP_LOG_LEVEL", "INFO").strip().upper()

UPLOAD_WORKERS = int(os.environ.get("TGDROP_UPLOAD_WORKERS", "2"))

MiB = 1024 * 1024


@dataclass(frozen=True)
class BotConfig:
    """Telegram bot credentials and relay limits."""

    bot_token: str = ""
    chat_id: str = ""
    api_base: str = "https://api.telegram.org"
    timeout: float = 300.0
    connect_timeout: float = 30.0
    part_size: int = 49 * MiB
    direct_upload_max: int = 50 * MiB
    max_retries: int = 3

    @property
    def is_configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    @classmethod
    def from_env(cls) -> "BotConfig":
        return cls(
            bot_token=os.environ.get("TGDROP_BOT_TOKEN", "").strip(),
            chat_id=os.environ.get("TGDROP_CHAT_ID", "").strip(),
            api_base=os.environ.get("TGDROP_API_BASE", "").strip().rstrip("/")
            or "https://api.telegram.org",
            timeout=float(os.environ.get("TGDROP_TIMEOUT", "300")),
            connect_timeout=float(os.environ.get("TGDROP_CONNECT_TIMEOUT", "30")),
            part_size=int(os.environ.get("TGDROP_PART_SIZE", str(49 * MiB))),
            max_retries=int(os.environ.get("TGDROP_MAX_RETRIES", "3")),
        )


BOT_CONFIG = BotConfig.from_env()
