from pydantic import BaseModel, ConfigDict, field_validator
from typing import Optional, Dict, Any, List, Union

DEFAULT_PERSONA_COUNT = 5
MAX_PERSONA_COUNT = 20


def _blank_to_none(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class GenerateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    matter: Optional[str] = None
    keywords: Optional[str] = None
    target_description: Optional[str] = None
    persona_count: int = DEFAULT_PERSONA_COUNT
    julius_personas_sheet_url: Optional[str] = None
    complaint_file_url: Optional[str] = None
    research_file_url: Optional[str] = None
    update_source_sheet: bool = False

    @field_validator(
        "matter", "keywords", "target_description",
        "julius_personas_sheet_url", "complaint_file_url", "research_file_url",
        mode="before",
    )
    @classmethod
    def _strip(cls, v):
        return _blank_to_none(v)

    @field_validator("persona_count", mode="before")
    @classmethod
    def _coerce_count(cls, v):
        try:
            count = int(v)
        except (TypeError, ValueError):
            return DEFAULT_PERSONA_COUNT
        if count < 1:
            return DEFAULT_PERSONA_COUNT
        return min(count, MAX_PERSONA_COUNT)

    @field_validator("update_source_sheet", mode="before")
    @classmethod
    def _coerce_flag(cls, v):
        if isinstance(v, str):
            return v.strip().lower() in ("1", "true", "yes", "on")
        return bool(v)

    @property
    def missing_fields(self) -> List[str]:
        return [f for f in ("matter", "keywords", "target_description") if not getattr(self, f)]

    @property
    def enrichment_mode(self) -> bool:
        return bool(self.julius_personas_sheet_url)


class ErrorResponse(BaseModel):
    error: str
    message: str
    sessionId: Optional[str] = None
    timestamp: str
    details: Optional[Any] = None
    troubleshooting: Optional[Dict[str, Any]] = None


class GenerateResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    success: bool
    sessionId: str
    personas: List[Dict[str, Any]]
    dataAnalysis: Dict[str, Any]
    processingTime: str
    mode: Optional[str] = None
    enrichmentSummary: Optional[Dict[str, Any]] = None
    exportResults: Optional[Dict[str, Any]] = None
    storage: Optional[Dict[str, Any]] = None


class UploadResponse(BaseModel):
    url: str
    size: int
    filename: str
    originalName: str


class ChatRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: Optional[str] = None
    persona_name: Optional[str] = None
    persona_attributes: Optional[Union[str, Dict[str, Any]]] = None
    conversation_id: Optional[str] = None

    @field_validator("message", "persona_name", "conversation_id", mode="before")
    @classmethod
    def _strip(cls, v):
        return _blank_to_none(v)


class ChatResponse(BaseModel):
    success: bool
    persona_name: str
    persona_response: str
    timestamp: str
    chat_type: str
    conversation_id: str
