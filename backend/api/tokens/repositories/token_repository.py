"""Upload token repository: Data access layer."""

from datetime import datetime, timedelta

from sqlalchemy import and_, func, or_

from database import SessionLocal
from api.tokens.dto.token import UploadToken
from api.tokens.orm.upload_token_model import UploadTokenModel
from api.upload.dto.upload import UploadMetadata
from timeutils import as_utc


def _get_session():
    return SessionLocal()


def _model_to_dto(model: UploadTokenModel) -> UploadToken:
    return UploadToken(
        token=model.token,
        user_id=model.user_id,
        metadata=UploadMetadata.model_validate_json(model.metadata_json or "{}"),
        used=bool(model.used),
        used_at=as_utc(model.used_at),
        expires_at=as_utc(model.expires_at),
        created_at=as_utc(model.created_at),
    )


def create(
    token: str,
    user_id: str,
    metadata: UploadMetadata,
    expires_at: datetime,
    created_at: datetime,
) -> UploadToken:
    with _get_session() as session:
        model = UploadTokenModel(
            token=token,
            user_id=user_id,
            metadata_json=metadata.model_dump_json(exclude_none=True),
            used=False,
            expires_at=expires_at,
            created_at=created_at,
        )
        session.add(model)
        session.commit()
        session.refresh(model)
        return _model_to_dto(model)


def get(token: str) -> UploadToken | None:
    with _get_session() as session:
        model = session.query(UploadTokenModel).filter_by(token=token).first()
        return _model_to_dto(model) if model else None


def count_created_since(user_id: str, since: datetime) -> int:
    with _get_session() as session:
        return (
            session.query(func.count(UploadTokenModel.id))
            .filter(
                UploadTokenModel.user_id == user_id,
                UploadTokenModel.created_at >= since,
            )
            .scalar()
        )


def mark_used(token: str, used_at: datetime) -> bool:
    """Set used/used_at once. Later calls leave the row alone."""
    with _get_session() as session:
        updated = (
            session.query(UploadTokenModel)
            .filter(UploadTokenModel.token == token, UploadTokenModel.used.is_(False))
            .update(
                {UploadTokenModel.used: True, UploadTokenModel.used_at: used_at},
                synchronize_session=False,
            )
        )
        session.commit()
        return updated == 1


def delete_expired_before(cutoff: datetime) -> int:
    with _get_session() as session:
        deleted = (
            session.query(UploadTokenModel)
            .filter(UploadTokenModel.expires_at < cutoff)
            .delete(synchronize_session=False)
        )
        session.commit()
        return deleted


def delete_stale(now: datetime, used_ttl: timedelta) -> int:
    """Delete expired tokens and tokens used longer than ``used_ttl`` ago."""
    with _get_session() as session:
        deleted = (
            session.query(UploadTokenModel)
            .filter(
                or_(
                    UploadTokenModel.expires_at < now,
                    and_(
                        UploadTokenModel.used.is_(True),
                        UploadTokenModel.used_at < now - used_ttl,
                    ),
                )
            )
            .delete(synchronize_session=False)
        )
        session.commit()
        return deleted
