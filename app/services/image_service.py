from typing import Iterable, Optional
from PIL import Image
import io
import logging

from app.models.ocr import ValidationResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE_BYTES = 10 * 1024 * 1024
DEFAULT_ALLOWED_MIME_TYPES = ("image/jpeg", "image/png", "image/webp", "image/tiff")


class ImageService:
    """Service for validating uploaded images and preparing them for OCR"""

    def __init__(
        self,
        max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES,
        allowed_mime_types: Iterable[str] = DEFAULT_ALLOWED_MIME_TYPES,
        max_dimension: int = 4000
    ):
        """
        Args:
            max_size_bytes: Default upper bound on the raw image size
            allowed_mime_types: MIME types accepted for OCR
            max_dimension: Images wider than this are downscaled to fit a square of this size
        """
        self.max_size_bytes = max_size_bytes
        self.allowed_mime_types = tuple(allowed_mime_types)
        self.max_dimension = max_dimension

    def validate_image(
        self,
        data: bytes,
        mime_type: str,
        max_size_bytes: Optional[int] = None
    ) -> ValidationResult:
        """
        Check image size and MIME type before any expensive work

        Args:
            data: Raw image bytes
            mime_type: Declared MIME type
            max_size_bytes: Override for the configured size limit

        Returns:
            ValidationResult with valid=False and an error message on rejection
        """
        limit = self.max_size_bytes if max_size_bytes is None else max_size_bytes

        if len(data) > limit:
            return ValidationResult(
                valid=False,
                error=f"File size exceeds maximum of {limit / 1024 / 1024:g}MB"
            )

        if mime_type not in self.allowed_mime_types:
            logger.debug(f"Rejected MIME type: {mime_type}")
            return ValidationResult(
                valid=False,
                error=f"Unsupported image format. Allowed: {', '.join(self.allowed_mime_types)}"
            )

        return ValidationResult(valid=True)

    def optimize_image(self, data: bytes) -> bytes:
        """
        Downscale oversized images and convert to grayscale

        Best effort: on any failure the original bytes are returned unchanged.

        Args:
            data: Raw image bytes

        Returns:
            PNG encoded grayscale image, or the input on failure
        """
        try:
            with Image.open(io.BytesIO(data)) as img:
                img.load()
                width, height = img.size

                if width > self.max_dimension:
                    # thumbnail() keeps aspect ratio and never enlarges
                    img.thumbnail((self.max_dimension, self.max_dimension), Image.LANCZOS)
                    logger.debug(f"Resized image from {width}x{height} to {img.size[0]}x{img.size[1]}")

                gray = img.convert("L")

            output = io.BytesIO()
            gray.save(output, format="PNG")
            return output.getvalue()

        except Exception as e:
            logger.warning(f"Image optimization failed, using original: {e}")
            return data
