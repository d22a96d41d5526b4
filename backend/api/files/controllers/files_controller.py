"""Files controller: Admin API for stored file records."""

from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request, status

from auth import create_download_nonce, require_admin
from errors import NotFoundError
from api.access.repositories import access_log_repository
from api.files.dto.file import AccessLogResponse, DownloadLinkResponse, FileResponse
from api.files.services import files_service
from cleanup import run_cleanup

router = APIRouter(prefix="/api/files", tags=["Files"], dependencies=[Depends(require_admin)])
maintenance_router = APIRouter(prefix="/api", tags=["Files"], dependencies=[Depends(require_admin)])


def _get_or_404(file_id: int):
    record = files_service.get_file(file_id)
    if record is None:
        raise NotFoundError("File not found")
    return record


@router.get("", response_model=list[FileResponse])
def list_files():
    return [FileResponse.from_record(record) for record in files_service.list_files()]


@router.get("/{file_id}", response_model=FileResponse)
def get_file(file_id: int):
    return FileResponse.from_record(_get_or_404(file_id))


@router.get("/{file_id}/access-logs", response_model=list[AccessLogResponse])
def get_access_logs(file_id: int, limit: int = 50):
    _get_or_404(file_id)
    return access_log_repository.list_for_file(file_id, limit=limit)


@router.get("/{file_id}/download-link", response_model=DownloadLinkResponse)
def get_download_link(request: Request, file_id: int):
    """Signed link that stays valid for 12 to 24 hours."""
    _get_or_404(file_id)
    query = urlencode({"file_id": file_id, "nonce": create_download_nonce(file_id)})
    return DownloadLinkResponse(
        file_id=file_id,
        url=f"{str(request.base_url).rstrip('/')}/download?{query}",
    )


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_file(file_id: int):
    if not files_service.delete_file(file_id):
        raise NotFoundError("File not found")


@maintenance_router.post("/cleanup")
def cleanup():
    return run_cleanup()
