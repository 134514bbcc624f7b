"""Shared fixtures for OCR API tests."""

import io
import os
import tempfile

# Keep the app's local storage mount out of the working directory
os.environ.setdefault("STORAGE_LOCAL_DIR", tempfile.mkdtemp(prefix="ocr-storage-"))

import pytest
from PIL import Image, ImageDraw

from app.services.image_service import ImageService
from app.services.ocr_pipeline import OCRPipeline
from app.services.ocr_service import OCREngine
from app.services.result_store import ResultStore
from app.services.storage_service import StorageService, StoredObject


def make_image_bytes(size=(200, 80), mode="RGB", fmt="PNG", color="white") -> bytes:
    image = Image.new(mode, size, color=color)
    ImageDraw.Draw(image).text((10, 30), "HELLO", fill="black")
    output = io.BytesIO()
    image.save(output, format=fmt)
    return output.getvalue()


class FakeReader:
    """Stands in for easyocr.Reader"""

    def __init__(self, languages, detections=None, fail_with=None):
        self.languages = languages
        self.detections = detections if detections is not None else [
            ([[0, 0], [10, 0], [10, 10], [0, 10]], " Hello ", 0.9),
            ([[0, 20], [10, 20], [10, 30], [0, 30]], "World", 0.852),
        ]
        self.fail_with = fail_with
        self.calls = 0
        self.closed = False

    def readtext(self, image):
        self.calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        return self.detections

    def close(self):
        self.closed = True


class ReaderFactory:
    """Counts reader constructions; can be told to fail the next N attempts"""

    def __init__(self, failures=0, **reader_kwargs):
        self.failures = failures
        self.reader_kwargs = reader_kwargs
        self.created = []

    def __call__(self, languages):
        if self.failures > 0:
            self.failures -= 1
            raise RuntimeError("model download failed")
        reader = FakeReader(languages, **self.reader_kwargs)
        self.created.append(reader)
        return reader


class InMemoryStorage(StorageService):
    def __init__(self, fail_for=()):
        self.objects = {}
        self.fail_for = set(fail_for)

    async def put(self, key, data, mime_type):
        if any(key.endswith(name) for name in self.fail_for):
            raise RuntimeError("bucket unavailable")
        self.objects[key] = (data, mime_type)
        return StoredObject(key=key, url=f"https://files.test/{key}")


@pytest.fixture
def png_bytes():
    return make_image_bytes()


@pytest.fixture
def reader_factory():
    return ReaderFactory()


@pytest.fixture
def engine(reader_factory):
    return OCREngine(reader_factory=reader_factory)


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def result_store(tmp_path):
    store = ResultStore(
        f"sqlite:///{tmp_path / 'ocr.db'}",
        connect_args={"check_same_thread": False},
    )
    store.create_tables()
    yield store
    store.dispose()


@pytest.fixture
def pipeline(engine, storage, result_store):
    return OCRPipeline(
        image_service=ImageService(),
        engine=engine,
        storage=storage,
        result_store=result_store,
    )
