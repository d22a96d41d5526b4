"""Upload token ORM model."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, func

from database import Base


class UploadTokenModel(Base):
    __tablename__ = "upload_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token = Column(String(64), unique=True, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    metadata_json = Column("metadata", Text, nullable=True)
    used = Column(Boolean, nullable=False, default=False, index=True)
    used_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=func.now())
