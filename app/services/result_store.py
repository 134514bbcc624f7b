from dataclasses import dataclass
from typing import List, Optional
import logging

from sqlalchemy import create_engine, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool

from app.core.exceptions import PersistenceError
from app.models.db import Base, OCRResult

logger = logging.getLogger(__name__)


@dataclass
class NewOCRResult:
    """Fields of a result record before it is stored"""
    user_id: int
    image_file_name: str
    image_url: str
    extracted_text: str
    confidence: int
    language: str
    processing_time_ms: int


class ResultStore:
    """
    Persists OCR results per user

    Without a database URL the store runs degraded: nothing is saved, history
    is empty and deletes report False.
    """

    def __init__(self, database_url: Optional[str] = None, **engine_options):
        self.engine = None
        self._session_factory = None

        if not database_url:
            logger.warning("DATABASE_URL is not set, OCR results will not be persisted")
            return

        try:
            self.engine = create_engine(database_url, pool_pre_ping=True, **engine_options)
            self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        except (SQLAlchemyError, ImportError, ValueError) as e:
            logger.warning(f"Failed to configure database: {e}")
            self.engine = None
            self._session_factory = None

    @property
    def available(self) -> bool:
        return self._session_factory is not None

    def create_tables(self):
        if not self.available:
            return
        Base.metadata.create_all(self.engine)

    def dispose(self):
        if self.engine is not None:
            self.engine.dispose()

    def _save(self, record: NewOCRResult) -> OCRResult:
        with self._session_factory() as session:
            row = OCRResult(
                user_id=record.user_id,
                image_file_name=record.image_file_name,
                image_url=record.image_url,
                extracted_text=record.extracted_text,
                confidence=record.confidence,
                language=record.language,
                processing_time_ms=record.processing_time_ms,
            )
            session.add(row)
            session.commit()
            return row

    def _list_by_user(self, user_id: int) -> List[OCRResult]:
        with self._session_factory() as session:
            query = (
                select(OCRResult)
                .where(OCRResult.user_id == user_id)
                .order_by(OCRResult.created_at.desc(), OCRResult.id.desc())
            )
            return list(session.scalars(query))

    def _delete(self, result_id: int, user_id: int) -> bool:
        with self._session_factory() as session:
            # Owner check is part of the statement
            result = session.execute(
                delete(OCRResult).where(
                    OCRResult.id == result_id,
                    OCRResult.user_id == user_id,
                )
            )
            session.commit()
            return result.rowcount > 0

    async def save(self, record: NewOCRResult) -> Optional[OCRResult]:
        """
        Store a new result

        Returns:
            The stored row, or None when no database is configured

        Raises:
            PersistenceError: If the database write failed
        """
        if not self.available:
            logger.warning("Cannot save OCR result: database not available")
            return None

        try:
            return await run_in_threadpool(self._save, record)
        except SQLAlchemyError as e:
            logger.error(f"Failed to save OCR result: {e}")
            raise PersistenceError("Failed to save OCR result") from e

    async def list_by_user(self, user_id: int) -> List[OCRResult]:
        """All results owned by user_id, newest first"""
        if not self.available:
            logger.warning("Cannot get OCR results: database not available")
            return []

        try:
            return await run_in_threadpool(self._list_by_user, user_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to get OCR results: {e}")
            raise PersistenceError("Failed to retrieve OCR history") from e

    async def delete(self, result_id: int, user_id: int) -> bool:
        """Delete a result if it belongs to user_id; False when nothing matched"""
        if not self.available:
            logger.warning("Cannot delete OCR result: database not available")
            return False

        try:
            return await run_in_threadpool(self._delete, result_id, user_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete OCR result: {e}")
            raise PersistenceError("Failed to delete OCR result") from e
