class OCRServiceError(Exception):
    """Base class for errors raised by the OCR pipeline"""


class ImageValidationError(OCRServiceError):
    """Image rejected before processing (size, MIME type or encoding)"""


class EngineInitError(OCRServiceError):
    """Recognition engine could not be started; a later call may retry"""


class RecognitionError(OCRServiceError):
    """Recognition engine ran but failed on the image"""


class StorageError(OCRServiceError):
    """Uploading the original image to object storage failed"""


class PersistenceError(OCRServiceError):
    """Reading or writing OCR results in the result store failed"""
