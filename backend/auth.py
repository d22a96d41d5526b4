"""Authentication: Uploader accounts, admin checks, and signed download links."""

import hashlib
import hmac
import ipaddress
import secrets
import time

from fastapi import Request

from config import ADMIN_ENABLED, SECRET_KEY, TGDROP_ADMIN_PASS, TGDROP_ADMIN_USER, TGDROP_USERS
from errors import AuthError
from logging_config import get_logger

logger = get_logger("auth")

COOKIE_NAME = "tgdrop_session"
ANONYMOUS = "anonymous"

# Download links stay valid for one to two ticks
NONCE_TICK = 60 * 60 * 12


def _parse_accounts(raw: str) -> dict[str, str]:
    accounts = {}
    for entry in raw.split(","):
        user, sep, password = entry.strip().partition(":")
        if sep and user and password:
            accounts[user] = password
    return accounts


ACCOUNTS = _parse_accounts(TGDROP_USERS)
if ADMIN_ENABLED:
    ACCOUNTS[TGDROP_ADMIN_USER] = TGDROP_ADMIN_PASS

_secret = SECRET_KEY.encode() if SECRET_KEY else secrets.token_bytes(32)
if not SECRET_KEY:
    logger.warning("TGDROP_SECRET_KEY is not set; download links will not survive a restart")


def authenticate(username: str, password: str) -> bool:
    expected = ACCOUNTS.get(username)
    if expected is None:
        return False
    return secrets.compare_digest(password.encode(), expected.encode())


def _make_token(username: str) -> str:
    """Create HMAC token from the account's current credentials."""
    key = f"{username}:{ACCOUNTS.get(username, '')}".encode()
    return hmac.new(key, b"tgdrop_session", hashlib.sha256).hexdigest()


def create_session_cookie(username: str) -> str:
    return f"{username}:{_make_token(username)}"


def _verify_session(session: str) -> str | None:
    username, sep, token = session.rpartition(":")
    if not sep or username not in ACCOUNTS:
        return None
    if secrets.compare_digest(token.encode(), _make_token(username).encode()):
        return username
    return None


def current_user(request: Request) -> str | None:
    """Return the authenticated username, or None."""
    if not ACCOUNTS:
        return ANONYMOUS

    # Check header auth (API / curl)
    user = request.headers.get("X-Auth-User", "")
    password = request.headers.get("X-Auth-Pass", "")
    if user and password:
        return user if authenticate(user, password) else None

    # Check session cookie (browser)
    session = request.cookies.get(COOKIE_NAME)
    if session:
        return _verify_session(session)

    return None


def is_admin(request: Request) -> bool:
    """Check admin via headers or session cookie."""
    if not ADMIN_ENABLED:
        return True

    user = request.headers.get("X-Admin-User", "")
    password = request.headers.get("X-Admin-Pass", "")
    if user and password:
        return (
            secrets.compare_digest(user.encode(), TGDROP_ADMIN_USER.encode())
            and secrets.compare_digest(password.encode(), TGDROP_ADMIN_PASS.encode())
        )

    return current_user(request) == TGDROP_ADMIN_USER


def require_user(request: Request) -> str:
    """FastAPI dependency for uploader endpoints."""
    user = current_user(request)
    if not user:
        raise AuthError("Authentication required")
    return user


def require_admin(request: Request) -> None:
    if not is_admin(request):
        raise AuthError("Admin access required")


def _nonce_for(file_id: int, tick: int) -> str:
    message = f"download|{file_id}|{tick}".encode()
    return hmac.new(_secret, message, hashlib.sha256).hexdigest()[:32]


def create_download_nonce(file_id: int, now: float | None = None) -> str:
    tick = int((now if now is not None else time.time()) // NONCE_TICK)
    return _nonce_for(file_id, tick)


def verify_download_nonce(file_id: int, nonce: str | None, now: float | None = None) -> bool:
    if not nonce:
        return False
    tick = int((now if now is not None else time.time()) // NONCE_TICK)
    given = nonce.encode()
    return any(
        secrets.compare_digest(given, _nonce_for(file_id, t).encode()) for t in (tick, tick - 1)
    )


def get_client_ip(request: Request) -> str:
    """First valid address from the proxy headers, then the socket peer."""
    for header in ("X-Forwarded-For", "X-Real-IP", "Client-IP"):
        value = request.headers.get(header)
        if not value:
            continue
        candidate = value.split(",")[0].strip()
        try:
            ipaddress.ip_address(candidate)
        except ValueError:
            continue
        return candidate

    if request.client and request.client.host:
        return request.client.host
    return "Unknown"
