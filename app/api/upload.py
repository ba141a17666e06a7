from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile
import logging

from app.dependencies import Services, get_services
from app.schemas.personas import UploadResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["upload"])


@router.post("/upload", response_model=UploadResponse)
async def upload_file(request: Request, services: Services = Depends(get_services)):
    """Store the first file of a multipart upload in blob storage."""
    logger.info("Processing file upload")
    try:
        form = await request.form()
        files = [value for value in form.values() if isinstance(value, UploadFile)]
        if not files:
            return JSONResponse(status_code=400, content={"error": "No file provided"})

        upload = files[0]
        data = await upload.read()
        original_name = upload.filename or "upload"
        logger.info(f"Uploading file: {original_name} ({len(data)} bytes)")

        blob = services.require_blob()
        stored = await run_in_threadpool(blob.put, original_name, data, upload.content_type)
    except Exception as e:
        logger.error(f"Upload error: {e}")
        return JSONResponse(status_code=500, content={"error": "Upload failed", "message": str(e)})

    return UploadResponse(
        url=stored["url"],
        size=stored["size"],
        filename=stored["filename"],
        originalName=original_name,
    )
