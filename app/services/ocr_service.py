from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any, Callable, List, Optional
import asyncio
import logging
import numpy as np
import cv2
import easyocr

from app.core.exceptions import EngineInitError, RecognitionError
from app.models.ocr import RecognitionResult

logger = logging.getLogger(__name__)

# Tesseract-style language codes accepted by the API -> EasyOCR codes
LANGUAGE_CODES = {
    'eng': 'en',
    'rus': 'ru',
    'uzb': 'uz',
    'deu': 'de',
    'fra': 'fr',
    'spa': 'es',
    'ita': 'it',
    'por': 'pt',
    'tur': 'tr',
    'ukr': 'uk',
    'kor': 'ko',
    'jpn': 'ja',
    'chi_sim': 'ch_sim',
    'chi_tra': 'ch_tra',
}

SUPPORTED_LANGUAGES = frozenset(LANGUAGE_CODES) | frozenset(LANGUAGE_CODES.values())


def to_engine_language(language: str) -> str:
    """Map an API language code to the code EasyOCR expects"""
    return LANGUAGE_CODES.get(language, language)


class EngineState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


ReaderFactory = Callable[[List[str]], Any]


class OCREngine:
    """
    Owns a single lazily constructed EasyOCR reader

    The reader is built on first use, shared by every caller and torn down by
    terminate(). Calls into the reader are serialized.
    """

    def __init__(
        self,
        default_language: str = 'eng',
        gpu: bool = False,
        paragraph_mode: bool = False,
        min_confidence: float = 0.0,
        strip_whitespace: bool = True,
        reader_factory: Optional[ReaderFactory] = None
    ):
        """
        Args:
            default_language: Language the reader is bound to when none is requested
            gpu: Use GPU acceleration if available
            paragraph_mode: Merge lines into paragraphs with spaces
            min_confidence: Minimum confidence threshold (0.0 - 1.0)
            strip_whitespace: Remove leading/trailing whitespace from text
            reader_factory: Builds a reader from a list of EasyOCR language codes
        """
        self.default_language = default_language
        self.gpu = gpu
        self.paragraph_mode = paragraph_mode
        self.min_confidence = min_confidence
        self.strip_whitespace = strip_whitespace
        self._reader_factory = reader_factory or self._create_reader

        self.state = EngineState.UNINITIALIZED
        self.language: Optional[str] = None
        self._reader = None
        self._init_lock = asyncio.Lock()
        self._recognize_lock = asyncio.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ocr-engine")

    def supports_language(self, language: Optional[str]) -> bool:
        return (language or self.default_language) in SUPPORTED_LANGUAGES

    def _create_reader(self, languages: List[str]):
        return easyocr.Reader(languages, gpu=self.gpu, verbose=False)

    async def get_reader(self, language: Optional[str] = None):
        """
        Return the shared reader, constructing it if needed

        Concurrent first callers wait on the same construction. Asking for a
        different language rebinds the single instance; the current reader
        stays in place until its replacement has been built.

        Raises:
            EngineInitError: If the reader could not be constructed
        """
        language = language or self.default_language

        async with self._init_lock:
            if self.state == EngineState.READY and self.language == language:
                return self._reader

            previous = self._reader
            if previous is None:
                self.state = EngineState.INITIALIZING
                logger.info(f"Initializing OCR engine for language: {language}, GPU: {self.gpu}")
            else:
                logger.info(f"Rebinding OCR engine from '{self.language}' to '{language}'")
            loop = asyncio.get_running_loop()

            try:
                reader = await loop.run_in_executor(
                    self._executor,
                    self._reader_factory,
                    [to_engine_language(language)]
                )
            except Exception as e:
                logger.error(f"Failed to initialize OCR worker: {e}")
                if previous is None:
                    self.state = EngineState.UNINITIALIZED
                raise EngineInitError("Failed to initialize OCR worker") from e

            if previous is not None:
                self._close_reader(previous)

            self._reader = reader
            self.language = language
            self.state = EngineState.READY
            return reader

    async def recognize(self, data: bytes, language: Optional[str] = None) -> RecognitionResult:
        """
        Extract text from encoded image bytes

        Args:
            data: Encoded image (PNG, JPEG, ...)
            language: API language code, defaults to the engine's default

        Returns:
            RecognitionResult with joined text and mean confidence (0.0 - 1.0)

        Raises:
            EngineInitError: If the reader could not be constructed
            RecognitionError: If decoding or recognition failed
        """
        reader = await self.get_reader(language)
        loop = asyncio.get_running_loop()

        async with self._recognize_lock:
            try:
                detections = await loop.run_in_executor(
                    self._executor,
                    self._process_image,
                    reader,
                    data
                )
            except Exception as e:
                raise RecognitionError(f"OCR processing failed: {str(e)}") from e

        return self._build_result(detections)

    def _process_image(self, reader, data: bytes) -> List:
        """
        Synchronous OCR processing

        Args:
            reader: EasyOCR reader
            data: Encoded image bytes

        Returns:
            List of (bbox, text, confidence) detections
        """
        image_data = np.frombuffer(data, np.uint8)
        image = cv2.imdecode(image_data, cv2.IMREAD_COLOR)

        if image is None:
            raise ValueError("Failed to decode image")

        return reader.readtext(image)

    def _build_result(self, detections: List) -> RecognitionResult:
        if self.min_confidence > 0:
            detections = [d for d in detections if d[2] >= self.min_confidence]

        if not detections:
            return RecognitionResult(text='', confidence=None)

        text_lines = [detection[1] for detection in detections]

        if self.strip_whitespace:
            text_lines = [line.strip() for line in text_lines]

        if self.paragraph_mode:
            text = ' '.join(text_lines)
        else:
            text = '\n'.join(text_lines)

        confidences = [float(detection[2]) for detection in detections]
        return RecognitionResult(
            text=text,
            confidence=sum(confidences) / len(confidences)
        )

    @staticmethod
    def _close_reader(reader):
        close = getattr(reader, 'close', None)
        if close is None:
            return
        try:
            close()
        except Exception as e:
            logger.error(f"Failed to terminate OCR worker: {e}")

    def _release(self):
        self._reader = None
        self.language = None
        self.state = EngineState.UNINITIALIZED

    async def terminate(self):
        """Release the reader; the next recognize() builds a new one"""
        async with self._init_lock:
            reader = self._reader
            if reader is None:
                return
            self._release()
            self._close_reader(reader)
            logger.info("OCR engine terminated")

    async def shutdown(self):
        """Terminate the reader and stop the worker thread"""
        await self.terminate()
        self._executor.shutdown(wait=False)

