from dataclasses import dataclass, field
from typing import List, Optional
import base64
import binascii

from app.core.exceptions import ImageValidationError


def decode_image_data(image_data: str) -> bytes:
    """Decode a base64 payload, accepting an optional data URL prefix"""
    if image_data.startswith("data:") and "," in image_data:
        image_data = image_data.split(",", 1)[1]
    try:
        return base64.b64decode(image_data, validate=True)
    except (binascii.Error, ValueError):
        raise ImageValidationError("image_data is not valid base64")


@dataclass
class ValidationResult:
    """Outcome of the size / MIME type check"""
    valid: bool
    error: Optional[str] = None


@dataclass
class RecognitionResult:
    """Raw engine output: text and mean detection score in [0, 1] (None when nothing detected)"""
    text: str
    confidence: Optional[float] = None


@dataclass
class OCRRequest:
    """
    Single image to process

    Carries either raw bytes or the base64 payload it arrived as; load()
    decodes the payload on first use.
    """
    file_name: str
    mime_type: str
    language: str = "eng"
    image_bytes: Optional[bytes] = None
    image_data: Optional[str] = None

    def load(self) -> bytes:
        if self.image_bytes is None:
            self.image_bytes = decode_image_data(self.image_data or "")
        return self.image_bytes


@dataclass
class OCROutcome:
    """Result of running one image through optimize -> recognize"""
    text: str
    confidence: int
    language: str
    processing_time_ms: int
    success: bool
    error: Optional[str] = None
    # Failure came from engine startup and may succeed on a later call
    retryable: bool = False


@dataclass
class ProcessedImage:
    """A recognized, uploaded and (possibly) persisted image"""
    file_name: str
    text: str
    confidence: int
    language: str
    processing_time_ms: int
    image_url: str
    persisted: bool


@dataclass
class ItemError:
    file_name: str
    error: str


@dataclass
class BatchOutcome:
    results: List[ProcessedImage] = field(default_factory=list)
    errors: List[ItemError] = field(default_factory=list)

    @property
    def total_processed(self) -> int:
        return len(self.results)

    @property
    def total_failed(self) -> int:
        return len(self.errors)
