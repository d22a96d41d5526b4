"""Download analytics repository: One row per stream that started."""

from sqlalchemy import func

from database import SessionLocal
from api.download.orm.download_event_model import DownloadEventModel


def _get_session():
    return SessionLocal()


def append(file_id: int, ip_address: str, user_agent: str, user_id: str | None = None) -> None:
    with _get_session() as session:
        session.add(
            DownloadEventModel(
                file_id=file_id,
                user_id=user_id,
                ip_address=ip_address,
                user_agent=user_agent,
            )
        )
        session.commit()


def count_for_file(file_id: int) -> int:
    with _get_session() as session:
        return (
            session.query(func.count(DownloadEventModel.id))
            .filter(DownloadEventModel.file_id == file_id)
            .scalar()
        )
