"""Download analytics ORM model."""

from sqlalchemy import Column, DateTime, Integer, String, Text, func

from database import Base


class DownloadEventModel(Base):
    __tablename__ = "download_analytics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    file_id = Column(Integer, nullable=False, index=True)
    user_id = Column(String, nullable=True, index=True)
    ip_address = Column(String(45), nullable=False)
    user_agent = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=func.now(), index=True)
