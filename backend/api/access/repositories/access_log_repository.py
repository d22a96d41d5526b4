"""Access log repository: Append-only audit trail."""

import json

from database import SessionLocal
from api.access.orm.access_log_model import AccessLogModel
from api.files.dto.file import AccessLogResponse
from timeutils import as_utc


def _get_session():
    return SessionLocal()


def _model_to_dto(model: AccessLogModel) -> AccessLogResponse:
    return AccessLogResponse(
        id=model.id,
        file_id=model.file_id,
        user_id=model.user_id,
        action=model.action,
        ip_address=model.ip_address,
        user_agent=model.user_agent or "",
        created_at=as_utc(model.created_at),
        extra_data=json.loads(model.extra_data) if model.extra_data else None,
    )


def append(
    file_id: int,
    action: str,
    ip_address: str,
    user_agent: str,
    user_id: str | None = None,
    extra_data: dict | None = None,
) -> int:
    with _get_session() as session:
        model = AccessLogModel(
            file_id=file_id,
            user_id=user_id,
            action=action,
            ip_address=ip_address,
            user_agent=user_agent,
            extra_data=json.dumps(extra_data) if extra_data else None,
        )
        session.add(model)
        session.commit()
        return model.id


def list_for_file(file_id: int, limit: int = 50) -> list[AccessLogResponse]:
    with _get_session() as session:
        models = (
            session.query(AccessLogModel)
            .filter_by(file_id=file_id)
            .order_by(AccessLogModel.created_at.desc(), AccessLogModel.id.desc())
            .limit(limit)
            .all()
        )
        return [_model_to_dto(m) for m in models]
