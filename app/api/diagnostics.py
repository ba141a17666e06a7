from fastapi import APIRouter, Depends, Request
import logging

from app.dependencies import Services, get_services
from app.services.workflow import utc_now

logger = logging.getLogger(__name__)

router = APIRouter(tags=["diagnostics"])


@router.get("/")
def root():
    return {"message": "Persona Studio API"}


@router.get("/health")
def health_check(services: Services = Depends(get_services)):
    return {
        "status": "healthy",
        "service": "persona-studio",
        "timestamp": utc_now(),
        "integrations": {
            "openai": services.llm is not None,
            "research": services.research.configured,
            "sheets": services.sheets is not None,
            "storage_sheet": bool(services.sheets is not None and services.sheets.storage_spreadsheet_id),
            "blob_storage": services.blob is not None,
        },
    }


@router.get("/simple-test")
def simple_test(request: Request):
    return {
        "success": True,
        "message": "API is working!",
        "method": request.method,
        "timestamp": utc_now(),
    }


@router.get("/test-logging")
def test_logging(request: Request):
    logger.info("Logging test started")
    logger.info(f"Method: {request.method}")
    logger.info(f"Header names: {list(request.headers.keys())}")
    return {
        "success": True,
        "message": "Logging test completed",
        "timestamp": utc_now(),
        "method": request.method,
    }
