"""Pending upload repository: Data access layer.

Status changes are conditional updates so two workers handling the same row
cannot both move it forward.
"""

from datetime import datetime

from database import SessionLocal
from api.pending.dto.pending import PendingStatus, PendingUpload
from api.pending.orm.pending_upload_model import PendingUploadModel
from api.upload.dto.upload import UploadMetadata
from timeutils import as_utc


def _get_session():
    return SessionLocal()


def _model_to_dto(model: PendingUploadModel) -> PendingUpload:
    return PendingUpload(
        id=model.id,
        file_path=model.file_path,
        filename=model.filename,
        size=model.size or 0,
        status=PendingStatus(model.status),
        progress=model.progress or 0,
        error_message=model.error_message,
        retry_count=model.retry_count or 0,
        max_retries=model.max_retries,
        metadata=UploadMetadata.model_validate_json(model.metadata_json or "{}"),
        file_ids=[int(i) for i in model.file_ids.split(",")] if model.file_ids else [],
        created_at=as_utc(model.created_at),
        updated_at=as_utc(model.updated_at),
    )


def create(
    file_path: str,
    filename: str,
    size: int,
    metadata: UploadMetadata,
    max_retries: int,
    created_at: datetime,
) -> PendingUpload:
    with _get_session() as session:
        model = PendingUploadModel(
            file_path=file_path,
            filename=filename,
            size=size,
            status=PendingStatus.PENDING.value,
            progress=0,
            retry_count=0,
            max_retries=max_retries,
            metadata_json=metadata.model_dump_json(exclude_none=True),
            created_at=created_at,
            updated_at=created_at,
        )
        session.add(model)
        session.commit()
        session.refresh(model)
        return _model_to_dto(model)


def get(pending_id: int) -> PendingUpload | None:
    with _get_session() as session:
        model = session.get(PendingUploadModel, pending_id)
        return _model_to_dto(model) if model else None


def _update_where(pending_id: int, conditions: list, values: dict) -> bool:
    with _get_session() as session:
        updated = (
            session.query(PendingUploadModel)
            .filter(PendingUploadModel.id == pending_id, *conditions)
            .update(values, synchronize_session=False)
        )
        session.commit()
        return updated == 1


def claim(pending_id: int, progress: int) -> bool:
    """pending -> processing. False if another worker got there first."""
    return _update_where(
        pending_id,
        [PendingUploadModel.status == PendingStatus.PENDING.value],
        {
            PendingUploadModel.status: PendingStatus.PROCESSING.value,
            PendingUploadModel.progress: progress,
        },
    )


def advance_progress(pending_id: int, progress: int) -> bool:
    return _update_where(
        pending_id,
        [
            PendingUploadModel.status == PendingStatus.PROCESSING.value,
            PendingUploadModel.progress < progress,
        ],
        {PendingUploadModel.progress: progress},
    )


def set_retry_count(pending_id: int, retry_count: int) -> None:
    _update_where(pending_id, [], {PendingUploadModel.retry_count: retry_count})


def complete(pending_id: int, file_ids: list[int]) -> bool:
    return _update_where(
        pending_id,
        [PendingUploadModel.status == PendingStatus.PROCESSING.value],
        {
            PendingUploadModel.status: PendingStatus.COMPLETED.value,
            PendingUploadModel.progress: 100,
            PendingUploadModel.file_ids: ",".join(str(i) for i in file_ids),
        },
    )


def fail(pending_id: int, error_message: str) -> bool:
    return _update_where(
        pending_id,
        [PendingUploadModel.status == PendingStatus.PROCESSING.value],
        {
            PendingUploadModel.status: PendingStatus.FAILED.value,
            PendingUploadModel.error_message: error_message,
        },
    )


def list_ids_by_status(status: PendingStatus, created_after: datetime) -> list[int]:
    with _get_session() as session:
        rows = (
            session.query(PendingUploadModel.id)
            .filter(
                PendingUploadModel.status == status.value,
                PendingUploadModel.created_at >= created_after,
            )
            .order_by(PendingUploadModel.id)
            .all()
        )
        return [row.id for row in rows]


def delete_created_before(statuses: list[PendingStatus], cutoff: datetime) -> int:
    with _get_session() as session:
        deleted = (
            session.query(PendingUploadModel)
            .filter(
                PendingUploadModel.status.in_([s.value for s in statuses]),
                PendingUploadModel.created_at < cutoff,
            )
            .delete(synchronize_session=False)
        )
        session.commit()
        return deleted


def list_file_paths() -> list[str]:
    with _get_session() as session:
        return [row.file_path for row in session.query(PendingUploadModel.file_path).all()]
