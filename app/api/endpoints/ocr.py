from fastapi import APIRouter, Depends, HTTPException, status
from typing import List
import logging

from app.api.deps import get_pipeline, get_result_store
from app.core.config import settings
from app.core.exceptions import (
    EngineInitError,
    ImageValidationError,
    OCRServiceError,
    PersistenceError,
    RecognitionError,
    StorageError,
)
from app.core.security import AuthUser, get_current_user
from app.models.requests import BatchInput, ProcessImageInput
from app.models.responses import (
    BatchResponse,
    DeleteResultResponse,
    ImageError,
    ImageResult,
    OCRResultRecord,
    ProcessImageResponse,
)
from app.services.ocr_pipeline import OCRPipeline
from app.services.result_store import ResultStore

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_STATUS = {
    ImageValidationError: status.HTTP_400_BAD_REQUEST,
    EngineInitError: status.HTTP_503_SERVICE_UNAVAILABLE,
    RecognitionError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    StorageError: status.HTTP_502_BAD_GATEWAY,
    PersistenceError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@router.post("/process", response_model=ProcessImageResponse)
async def process_image(
    payload: ProcessImageInput,
    user: AuthUser = Depends(get_current_user),
    pipeline: OCRPipeline = Depends(get_pipeline)
):
    """
    Extract text from a single base64 encoded image

    The original image is uploaded to object storage and the result saved
    to the caller's history.
    """
    logger.info(f"Processing image {payload.file_name} for user {user.id}")

    try:
        processed = await pipeline.process_image(payload.to_request(), user.id)
    except OCRServiceError as e:
        logger.error(f"OCR processing failed: {e}")
        raise HTTPException(
            status_code=ERROR_STATUS.get(type(e), status.HTTP_500_INTERNAL_SERVER_ERROR),
            detail=str(e)
        )
    except Exception as e:
        logger.error(f"OCR processing failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process image"
        )

    return ProcessImageResponse(
        success=True,
        text=processed.text,
        confidence=processed.confidence,
        language=processed.language,
        processing_time_ms=processed.processing_time_ms,
        image_url=processed.image_url,
        persisted=processed.persisted
    )


@router.post("/batch", response_model=BatchResponse)
async def process_batch(
    payload: BatchInput,
    user: AuthUser = Depends(get_current_user),
    pipeline: OCRPipeline = Depends(get_pipeline)
):
    """
    Extract text from several images

    Failures are reported per file in `errors`; other images still complete.
    """
    if len(payload.images) > settings.MAX_IMAGES_PER_BATCH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Too many images. Maximum: {settings.MAX_IMAGES_PER_BATCH}, Found: {len(payload.images)}"
        )

    logger.info(f"Processing batch of {len(payload.images)} images for user {user.id}")

    outcome = await pipeline.process_batch(
        [image.to_request() for image in payload.images],
        user.id
    )

    return BatchResponse(
        success=True,
        results=[
            ImageResult(
                file_name=r.file_name,
                text=r.text,
                confidence=r.confidence,
                processing_time_ms=r.processing_time_ms,
                image_url=r.image_url
            )
            for r in outcome.results
        ],
        errors=[ImageError(file_name=e.file_name, error=e.error) for e in outcome.errors],
        total_processed=outcome.total_processed,
        total_failed=outcome.total_failed
    )


@router.get("/history", response_model=List[OCRResultRecord])
async def get_history(
    user: AuthUser = Depends(get_current_user),
    result_store: ResultStore = Depends(get_result_store)
):
    """Caller's OCR results, newest first"""
    try:
        rows = await result_store.list_by_user(user.id)
    except PersistenceError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve OCR history"
        )

    return [OCRResultRecord.model_validate(row) for row in rows]


@router.delete("/results/{result_id}", response_model=DeleteResultResponse)
async def delete_result(
    result_id: int,
    user: AuthUser = Depends(get_current_user),
    result_store: ResultStore = Depends(get_result_store)
):
    """Delete one of the caller's results"""
    try:
        deleted = await result_store.delete(result_id, user.id)
    except PersistenceError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete OCR result"
        )

    if not deleted:
        logger.info(f"Result {result_id} not deleted for user {user.id}")

    return DeleteResultResponse(success=deleted)
