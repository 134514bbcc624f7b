from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from pathlib import Path
import logging

from app.core.config import Settings, settings
from app.api.endpoints import ocr
from app.services.image_service import ImageService
from app.services.ocr_pipeline import OCRPipeline
from app.services.ocr_service import OCREngine
from app.services.result_store import ResultStore
from app.services.storage_service import create_storage_service

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.DEBUG else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def build_pipeline(config: Settings, result_store: ResultStore) -> OCRPipeline:
    """Wire the OCR pipeline from configuration"""
    image_service = ImageService(
        max_size_bytes=config.MAX_IMAGE_SIZE_BYTES,
        allowed_mime_types=config.ALLOWED_MIME_TYPES,
        max_dimension=config.OCR_MAX_IMAGE_DIMENSION
    )
    engine = OCREngine(
        default_language=config.OCR_DEFAULT_LANGUAGE,
        gpu=config.OCR_GPU_ENABLED,
        paragraph_mode=config.OCR_PARAGRAPH_MODE,
        min_confidence=config.OCR_MIN_CONFIDENCE,
        strip_whitespace=config.OCR_STRIP_WHITESPACE
    )
    return OCRPipeline(
        image_service=image_service,
        engine=engine,
        storage=create_storage_service(config),
        result_store=result_store
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager
    Handles startup and shutdown events
    """
    logger.info("Starting up OCR API...")
    result_store = ResultStore(settings.DATABASE_URL)
    result_store.create_tables()

    app.state.result_store = result_store
    app.state.pipeline = build_pipeline(settings, result_store)

    yield

    logger.info("Shutting down OCR API...")
    await app.state.pipeline.engine.shutdown()
    result_store.dispose()


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    description="API for extracting text from uploaded images using OCR. Results are stored per user.",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(
    ocr.router,
    prefix="/api/v1/ocr",
    tags=["OCR"]
)

# Serve locally stored images so returned image URLs resolve
if settings.STORAGE_BACKEND == "local":
    storage_dir = Path(settings.STORAGE_LOCAL_DIR)
    storage_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/files", StaticFiles(directory=storage_dir), name="files")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
