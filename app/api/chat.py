from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
import logging

from app.dependencies import Services, get_services
from app.schemas.personas import ChatRequest, ChatResponse
from app.services.chat import PersonaChat
from app.services.workflow import utc_now

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


@router.post("/chat", response_model=ChatResponse)
async def chat_with_persona(payload: ChatRequest, services: Services = Depends(get_services)):
    if not payload.message:
        return JSONResponse(status_code=400, content={"error": "Message is required"})

    logger.info("Chat request received")
    try:
        chat = PersonaChat(services.require_chat_llm(), services.sheets)
        result = await run_in_threadpool(
            chat.reply,
            payload.message,
            payload.persona_name,
            payload.persona_attributes,
            payload.conversation_id,
        )
    except Exception as e:
        logger.error(f"Chat error: {e}")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Chat temporarily unavailable",
                "message": "I apologize, but I'm having trouble responding right now. Please try again in a moment.",
                "timestamp": utc_now(),
            },
        )

    logger.info("Chat response generated")
    return ChatResponse(success=True, timestamp=utc_now(), **result)
