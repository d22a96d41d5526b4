"""File ORM model."""

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Integer, String, Text, func

from database import Base


class FileModel(Base):
    __tablename__ = "files"

    id = Column(Integer, primary_key=True, autoincrement=True)
    filename = Column(String, nullable=False)
    size = Column(BigInteger, default=0)
    telegram_file_id = Column(String, nullable=False, index=True)
    file_url = Column(String, nullable=True)
    category = Column(String, nullable=True)
    tags = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    group_id = Column(String, nullable=True, index=True)
    part_number = Column(Integer, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    password_hash = Column(String, nullable=True)
    max_downloads = Column(Integer, nullable=True)
    access_count = Column(Integer, nullable=False, default=0)
    download_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=func.now())
