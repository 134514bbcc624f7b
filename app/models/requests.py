from typing import List

from pydantic import BaseModel, Field, field_validator

from app.core.config import settings
from app.core.exceptions import ImageValidationError
from app.models.ocr import OCRRequest, decode_image_data


class ImageInput(BaseModel):
    """Base64 encoded image submitted for OCR, decoded when processed"""
    image_data: str
    file_name: str = Field(min_length=1)
    mime_type: str
    language: str = settings.OCR_DEFAULT_LANGUAGE

    def to_request(self) -> OCRRequest:
        return OCRRequest(
            file_name=self.file_name,
            mime_type=self.mime_type,
            language=self.language,
            image_data=self.image_data,
        )


class ProcessImageInput(ImageInput):
    """Single image; the payload must be valid base64"""

    @field_validator("image_data")
    @classmethod
    def check_base64(cls, value: str) -> str:
        try:
            decode_image_data(value)
        except ImageValidationError as e:
            raise ValueError(str(e))
        return value


class BatchInput(BaseModel):
    """Several images processed independently; a bad payload fails only its own item"""
    images: List[ImageInput]
