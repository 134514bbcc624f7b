from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OCRResult(Base):
    """Recognized text for one uploaded image, owned by a user"""
    __tablename__ = "ocr_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    image_file_name = Column(String(255), nullable=False)
    image_url = Column(Text, nullable=False)
    extracted_text = Column(Text, nullable=False)
    confidence = Column(Integer, nullable=False, default=0)  # 0-100
    language = Column(String(10), nullable=False, default="eng")
    processing_time_ms = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    def __repr__(self):
        return f"OCRResult(id={self.id}, user_id={self.user_id}, file={self.image_file_name!r})"
