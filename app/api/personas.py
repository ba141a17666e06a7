from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import ValidationError
import json
import logging

from app.dependencies import Services, get_services
from app.schemas.personas import ErrorResponse, GenerateRequest, GenerateResponse
from app.services.workflow import WorkflowError, new_session_id, run_workflow, utc_now

logger = logging.getLogger(__name__)

router = APIRouter(tags=["personas"])


async def read_body(request: Request) -> dict:
    """JSON body, or urlencoded/multipart form fields."""
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        data = await request.json()
        if not isinstance(data, dict):
            raise ValueError("JSON body must be an object")
        return data
    if "form" in content_type:
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}
    raw = await request.body()
    if not raw:
        return {}
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("JSON body must be an object")
    return data


def error_response(session_id: str, error: WorkflowError) -> JSONResponse:
    body = ErrorResponse(
        error=error.error,
        message=error.message,
        sessionId=session_id,
        timestamp=utc_now(),
        **error.extra,
    )
    return JSONResponse(status_code=error.status_code, content=body.model_dump(exclude_none=True))


@router.post("/generate", response_model=GenerateResponse, response_model_exclude_none=True)
async def generate_personas(request: Request, services: Services = Depends(get_services)):
    session_id = new_session_id()
    logger.info(f"[{session_id}] Parsing form data, content-type: {request.headers.get('content-type')}")

    try:
        fields = await read_body(request)
        payload = GenerateRequest.model_validate(fields)
    except (ValueError, ValidationError) as e:
        logger.info(f"[{session_id}] Form parsing failed: {e}")
        return error_response(session_id, WorkflowError(400, "Failed to parse form data", str(e)))

    logger.info(
        f"[{session_id}] Persona request: matter={payload.matter!r}, count={payload.persona_count}, "
        f"sheet={'provided' if payload.julius_personas_sheet_url else 'none'}"
    )

    try:
        result = await run_in_threadpool(run_workflow, services, payload, session_id)
    except WorkflowError as e:
        return error_response(session_id, e)

    logger.info(f"[{session_id}] Workflow completed successfully")
    return result
