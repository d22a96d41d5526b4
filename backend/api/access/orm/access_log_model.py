"""Access log ORM model."""

from sqlalchemy import Column, DateTime, Integer, String, Text, func

from database import Base


class AccessLogModel(Base):
    __tablename__ = "access_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    file_id = Column(Integer, nullable=False, index=True)
    user_id = Column(String, nullable=True, index=True)
    action = Column(String(50), nullable=False)
    ip_address = Column(String(45), nullable=False)
    user_agent = Column(Text, nullable=False, default="")
    extra_data = Column(Text, nullable=True)
    created_at = Column(DateTime, default=func.now(), index=True)
