import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from cdnrelay.core.database import Base


class FileRecord(Base):
    __tablename__ = "files"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    filename = Column(String, unique=True, index=True, nullable=False)
    original_name = Column(String, nullable=False)
    size = Column(Integer, nullable=False)
    mimetype = Column(String, nullable=True)
    upload_date = Column(DateTime, default=datetime.utcnow, index=True)
    remote_url = Column(String, nullable=False)
    remote_name = Column(String, nullable=False)
