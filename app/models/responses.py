from datetime import datetime
from pydantic import BaseModel, ConfigDict
from typing import List


class ProcessImageResponse(BaseModel):
    """Response model for single image OCR"""
    success: bool
    text: str
    confidence: int  # 0-100
    language: str
    processing_time_ms: int
    image_url: str
    persisted: bool


class ImageResult(BaseModel):
    """Result of OCR processing for a single image in a batch"""
    file_name: str
    text: str
    confidence: int
    processing_time_ms: int
    image_url: str
    success: bool = True


class ImageError(BaseModel):
    """Error encountered while processing an image"""
    file_name: str
    error: str


class BatchResponse(BaseModel):
    """Response model for batch OCR"""
    success: bool = True
    results: List[ImageResult]
    errors: List[ImageError]
    total_processed: int
    total_failed: int


class OCRResultRecord(BaseModel):
    """Persisted OCR result as returned by the history endpoint"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    image_file_name: str
    image_url: str
    extracted_text: str
    confidence: int
    language: str
    processing_time_ms: int
    created_at: datetime
    updated_at: datetime


class DeleteResultResponse(BaseModel):
    success: bool
