from typing import List, Optional, Union
import logging
import math
import time

from starlette.concurrency import run_in_threadpool

from app.core.exceptions import (
    EngineInitError,
    ImageValidationError,
    OCRServiceError,
    RecognitionError,
)
from app.models.ocr import BatchOutcome, ItemError, OCROutcome, OCRRequest, ProcessedImage
from app.services.image_service import ImageService
from app.services.ocr_service import OCREngine
from app.services.result_store import NewOCRResult, ResultStore
from app.services.storage_service import StorageService, build_object_key

logger = logging.getLogger(__name__)


def to_percent(confidence: Optional[float]) -> int:
    """Map a 0.0 - 1.0 engine score to an integer percentage (round half up)"""
    if not confidence:
        return 0
    return max(0, min(100, math.floor(confidence * 100 + 0.5)))


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class OCRPipeline:
    """
    validate -> optimize -> recognize -> upload -> persist

    Images are handled one at a time; the engine holds a single reader.
    """

    def __init__(
        self,
        image_service: ImageService,
        engine: OCREngine,
        storage: StorageService,
        result_store: ResultStore
    ):
        self.image_service = image_service
        self.engine = engine
        self.storage = storage
        self.result_store = result_store

    async def process_one(
        self,
        data: bytes,
        file_name: str,
        mime_type: str,
        language: str = "eng"
    ) -> OCROutcome:
        """
        Optimize and recognize one image. Never raises.

        Args:
            data: Raw image bytes (already validated)
            file_name: Original file name, used for logging
            mime_type: Declared MIME type
            language: API language code

        Returns:
            OCROutcome; success=False carries the error message
        """
        start = time.perf_counter()

        try:
            optimized = await run_in_threadpool(self.image_service.optimize_image, data)
            recognition = await self.engine.recognize(optimized, language)
        except Exception as e:
            logger.error(f"OCR processing failed for {file_name} ({mime_type}): {e}")
            return OCROutcome(
                text="",
                confidence=0,
                language=language,
                processing_time_ms=_elapsed_ms(start),
                success=False,
                error=str(e) or "OCR processing failed",
                retryable=isinstance(e, EngineInitError),
            )

        return OCROutcome(
            text=recognition.text or "",
            confidence=to_percent(recognition.confidence),
            language=language,
            processing_time_ms=_elapsed_ms(start),
            success=True,
        )

    async def process_image(self, request: OCRRequest, user_id: int) -> ProcessedImage:
        """
        Full single image path

        Raises:
            ImageValidationError: Bad base64, size, MIME type or language
            EngineInitError: Engine could not start
            RecognitionError: Engine failed on the image
            StorageError: Upload failed
            PersistenceError: Saving the result failed
        """
        data = request.load()

        validation = self.image_service.validate_image(data, request.mime_type)
        if not validation.valid:
            raise ImageValidationError(validation.error or "Invalid image")

        if not self.engine.supports_language(request.language):
            raise ImageValidationError(f"Unsupported language: {request.language}")

        outcome = await self.process_one(
            data,
            request.file_name,
            request.mime_type,
            request.language
        )
        if not outcome.success:
            error_class = EngineInitError if outcome.retryable else RecognitionError
            raise error_class(outcome.error or "OCR processing failed")

        key = build_object_key(user_id, request.file_name)
        stored = await self.storage.put(key, data, request.mime_type)

        saved = await self.result_store.save(NewOCRResult(
            user_id=user_id,
            image_file_name=request.file_name,
            image_url=stored.url,
            extracted_text=outcome.text,
            confidence=outcome.confidence,
            language=request.language,
            processing_time_ms=outcome.processing_time_ms,
        ))
        if saved is None:
            logger.warning(f"OCR result for {request.file_name} was not persisted")

        return ProcessedImage(
            file_name=request.file_name,
            text=outcome.text,
            confidence=outcome.confidence,
            language=request.language,
            processing_time_ms=outcome.processing_time_ms,
            image_url=stored.url,
            persisted=saved is not None,
        )

    async def _process_item(
        self,
        request: OCRRequest,
        user_id: int
    ) -> Union[ProcessedImage, ItemError]:
        try:
            return await self.process_image(request, user_id)
        except OCRServiceError as e:
            logger.warning(f"Batch item {request.file_name} failed: {e}")
            return ItemError(file_name=request.file_name, error=str(e))
        except Exception as e:
            logger.error(f"Batch processing failed for {request.file_name}: {e}", exc_info=True)
            return ItemError(file_name=request.file_name, error=str(e) or "Unknown error")

    async def process_batch(self, requests: List[OCRRequest], user_id: int) -> BatchOutcome:
        """
        Process images sequentially and in order, isolating per-item failures

        Returns:
            BatchOutcome with one entry per input in either results or errors
        """
        outcome = BatchOutcome()

        for request in requests:
            item = await self._process_item(request, user_id)
            if isinstance(item, ItemError):
                outcome.errors.append(item)
            else:
                outcome.results.append(item)

        logger.info(
            f"Processed {outcome.total_processed} images successfully, "
            f"{outcome.total_failed} errors"
        )
        return outcome
