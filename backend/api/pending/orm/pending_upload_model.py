"""Pending upload ORM model."""

from sqlalchemy import BigInteger, Column, DateTime, Integer, String, Text, func

from database import Base


class PendingUploadModel(Base):
    __tablename__ = "pending_uploads"

    id = Column(Integer, primary_key=True, autoincrement=True)
    file_path = Column(String(500), nullable=False)
    filename = Column(String(255), nullable=False)
    size = Column(BigInteger, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    progress = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    max_retries = Column(Integer, nullable=False, default=3)
    metadata_json = Column("metadata", Text, nullable=True)
    file_ids = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=func.now(), index=True)
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())
