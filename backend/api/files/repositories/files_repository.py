"""Files repository: Data access layer."""

from datetime import datetime

from sqlalchemy import or_

from database import SessionLocal
from api.files.orm.file_model import FileModel
from api.files.dto.file import FileRecord
from timeutils import as_utc, utcnow


def _get_session():
    return SessionLocal()


def _model_to_dto(model: FileModel) -> FileRecord:
    return FileRecord(
        id=model.id,
        filename=model.filename,
        size=model.size or 0,
        telegram_file_id=model.telegram_file_id,
        file_url=model.file_url,
        category=model.category,
        tags=model.tags,
        description=model.description,
        group_id=model.group_id,
        part_number=model.part_number,
        expires_at=as_utc(model.expires_at),
        password_hash=model.password_hash,
        max_downloads=model.max_downloads,
        access_count=model.access_count or 0,
        download_count=model.download_count or 0,
        is_active=bool(model.is_active),
        created_at=as_utc(model.created_at),
    )


def list_all() -> list[FileRecord]:
    with _get_session() as session:
        models = session.query(FileModel).order_by(FileModel.created_at.desc()).all()
        return [_model_to_dto(m) for m in models]


def get_by_id(file_id: int) -> FileRecord | None:
    with _get_session() as session:
        model = session.get(FileModel, file_id)
        return _model_to_dto(model) if model else None


def create(
    filename: str,
    size: int,
    telegram_file_id: str,
    file_url: str | None = None,
    category: str | None = None,
    tags: str | None = None,
    description: str | None = None,
    group_id: str | None = None,
    part_number: int | None = None,
    expires_at: datetime | None = None,
    password_hash: str | None = None,
    max_downloads: int | None = None,
) -> FileRecord:
    with _get_session() as session:
        model = FileModel(
            filename=filename,
            size=size,
            telegram_file_id=telegram_file_id,
            file_url=file_url,
            category=category,
            tags=tags,
            description=description,
            group_id=group_id,
            part_number=part_number,
            expires_at=expires_at,
            password_hash=password_hash,
            max_downloads=max_downloads,
            access_count=0,
            download_count=0,
            is_active=True,
        )
        session.add(model)
        session.commit()
        session.refresh(model)
        return _model_to_dto(model)


def try_increment_access(file_id: int) -> bool:
    """Count one gate pass unless that would exceed max_downloads.

    A single conditional UPDATE, so concurrent downloads cannot overshoot the
    limit. Returns False when no row was updated.
    """
    with _get_session() as session:
        updated = (
            session.query(FileModel)
            .filter(
                FileModel.id == file_id,
                or_(
                    FileModel.max_downloads.is_(None),
                    FileModel.max_downloads <= 0,
                    FileModel.access_count < FileModel.max_downloads,
                ),
            )
            .update(
                {FileModel.access_count: FileModel.access_count + 1},
                synchronize_session=False,
            )
        )
        session.commit()
        return updated == 1


def increment_download(file_id: int) -> None:
    with _get_session() as session:
        session.query(FileModel).filter(FileModel.id == file_id).update(
            {FileModel.download_count: FileModel.download_count + 1},
            synchronize_session=False,
        )
        session.commit()


def deactivate(file_id: int) -> bool:
    """Flip is_active off. Returns False if it was already off."""
    with _get_session() as session:
        updated = (
            session.query(FileModel)
            .filter(FileModel.id == file_id, FileModel.is_active.is_(True))
            .update({FileModel.is_active: False}, synchronize_session=False)
        )
        session.commit()
        return updated == 1


def deactivate_expired() -> list[int]:
    """Deactivate every active row past its expiration. Returns their ids."""
    now = utcnow()
    with _get_session() as session:
        query = session.query(FileModel).filter(
            FileModel.expires_at.isnot(None),
            FileModel.expires_at < now,
            FileModel.is_active.is_(True),
        )
        ids = [model.id for model in query.all()]
        if ids:
            session.query(FileModel).filter(FileModel.id.in_(ids)).update(
                {FileModel.is_active: False}, synchronize_session=False
            )
            session.commit()
        return ids


def delete_by_id(file_id: int) -> bool:
    with _get_session() as session:
        model = session.get(FileModel, file_id)
        if not model:
            return False
        session.delete(model)
        session.commit()
        return True
