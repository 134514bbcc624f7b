from fastapi import Request

from app.services.ocr_pipeline import OCRPipeline
from app.services.result_store import ResultStore


def get_pipeline(request: Request) -> OCRPipeline:
    return request.app.state.pipeline


def get_result_store(request: Request) -> ResultStore:
    return request.app.state.result_store
