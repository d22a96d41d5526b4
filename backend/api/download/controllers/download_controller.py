"""Download controller: Gated downloads streamed from Telegram."""

from urllib.parse import quote, urlencode

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import JSONResponse, StreamingResponse

from auth import ANONYMOUS, current_user, get_client_ip, verify_download_nonce
from errors import ForbiddenError
from api.access.dto.access import AccessDecision, DenialReason
from api.download.dto.download import DownloadDenied
from api.download.services import download_service
from api.pages.controllers.pages_controller import templates
from api.telegram.services.telegram_client import TelegramClient, get_telegram_client

router = APIRouter(tags=["Download"])


def content_disposition(filename: str) -> str:
    """attachment header that survives non-ASCII names."""
    fallback = filename.encode("ascii", "replace").decode("ascii").replace('"', "")
    if fallback == filename:
        return f'attachment; filename="{filename}"'
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


def _wants_json(request: Request) -> bool:
    return "application/json" in request.headers.get("accept", "")


def _denied(request: Request, decision: AccessDecision, action: str):
    if decision.wants_password:
        status_code = 401
    elif decision.reason == DenialReason.NOT_FOUND:
        status_code = 404
    else:
        status_code = 403

    if _wants_json(request):
        return JSONResponse(
            status_code=status_code,
            content={
                "status": "error",
                "message": decision.message,
                "reason": decision.reason.value,
                "password_required": decision.wants_password,
            },
        )

    if decision.wants_password:
        error = decision.message if decision.reason == DenialReason.INCORRECT_PASSWORD else None
        return templates.TemplateResponse(
            request,
            "password.html",
            {"file": decision.file, "action": action, "error": error},
            status_code=status_code,
        )
    return templates.TemplateResponse(
        request,
        "denied.html",
        {"file": decision.file, "message": decision.message},
        status_code=status_code,
    )


def _serve(
    request: Request,
    file_id: int,
    password: str | None,
    action: str,
    client: TelegramClient,
):
    user = current_user(request)
    try:
        ticket = download_service.prepare_download(
            file_id,
            client,
            password=password or None,
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("user-agent", ""),
            user_id=user if user and user != ANONYMOUS else None,
        )
    except DownloadDenied as denied:
        return _denied(request, denied.decision, action)

    upstream = download_service.open_download(ticket, client)
    headers = {"Content-Disposition": content_disposition(ticket.file.filename)}
    if "content-length" in upstream.headers:
        headers["Content-Length"] = upstream.headers["content-length"]

    return StreamingResponse(
        download_service.iter_download(ticket, upstream),
        media_type="application/octet-stream",
        headers=headers,
    )


def _signed_action(file_id: int, nonce: str) -> str:
    return "/download?" + urlencode({"file_id": file_id, "nonce": nonce})


def _check_nonce(file_id: int, nonce: str | None) -> None:
    if not verify_download_nonce(file_id, nonce):
        raise ForbiddenError("Invalid or expired download link")


@router.get("/download")
def download_signed(
    request: Request,
    file_id: int,
    nonce: str | None = None,
    password: str | None = None,
    client: TelegramClient = Depends(get_telegram_client),
):
    """Download through a signed link handed out by an admin."""
    _check_nonce(file_id, nonce)
    return _serve(request, file_id, password, _signed_action(file_id, nonce), client)


@router.post("/download")
def download_signed_form(
    request: Request,
    file_id: int,
    nonce: str | None = None,
    password: str | None = Form(None),
    client: TelegramClient = Depends(get_telegram_client),
):
    _check_nonce(file_id, nonce)
    return _serve(request, file_id, password, _signed_action(file_id, nonce), client)


@router.get("/f/{file_id}")
def download_file(
    request: Request,
    file_id: int,
    password: str | None = None,
    client: TelegramClient = Depends(get_telegram_client),
):
    """Public share link. The gate still applies."""
    return _serve(request, file_id, password, f"/f/{file_id}", client)


@router.post("/f/{file_id}")
def download_file_form(
    request: Request,
    file_id: int,
    password: str | None = Form(None),
    client: TelegramClient = Depends(get_telegram_client),
):
    return _serve(request, file_id, password, f"/f/{file_id}", client)
