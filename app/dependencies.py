"""
Service container built from settings and injected into routers.

Collaborators that lack configuration are left as None; the `require_*`
accessors raise ConfigurationError so the request fails with a clear message
instead of the application failing to start.
"""
import logging
from functools import lru_cache
from typing import Optional

from app.core.config import Settings, settings
from app.services.blob_storage import BlobStorage, build_s3_client
from app.services.documents import DocumentLoader
from app.services.research import ResearchCollector
from app.services.sheets import SheetsClient, build_sheets_service
from persona_engine.exceptions import ConfigurationError
from persona_engine.openai_client import OpenAIClient
from persona_engine.throttle import FixedDelayThrottle, Throttle

logger = logging.getLogger(__name__)


class Services:
    def __init__(
        self,
        llm: Optional[OpenAIClient] = None,
        chat_llm: Optional[OpenAIClient] = None,
        research: Optional[ResearchCollector] = None,
        sheets: Optional[SheetsClient] = None,
        blob: Optional[BlobStorage] = None,
        documents: Optional[DocumentLoader] = None,
        throttle: Optional[Throttle] = None,
    ):
        self.llm = llm
        self.chat_llm = chat_llm or llm
        self.research = research or ResearchCollector(api_key=None)
        self.sheets = sheets
        self.blob = blob
        self.documents = documents or DocumentLoader()
        self.throttle = throttle or FixedDelayThrottle()

    def require_llm(self) -> OpenAIClient:
        if self.llm is None:
            raise ConfigurationError("OpenAI API key not configured")
        return self.llm

    def require_chat_llm(self) -> OpenAIClient:
        if self.chat_llm is None:
            raise ConfigurationError("OpenAI API key not configured")
        return self.chat_llm

    def require_sheets(self) -> SheetsClient:
        if self.sheets is None:
            raise ConfigurationError("Google Sheets credentials not configured")
        return self.sheets

    def require_blob(self) -> BlobStorage:
        if self.blob is None:
            raise ConfigurationError("Blob storage not configured")
        return self.blob


def build_services(config: Settings) -> Services:
    llm = chat_llm = None
    if config.OPENAI_API_KEY:
        llm = OpenAIClient(
            api_key=config.OPENAI_API_KEY,
            model=config.OPENAI_MODEL,
            request_timeout=config.OPENAI_REQUEST_TIMEOUT_S,
        )
        chat_llm = OpenAIClient(
            api_key=config.OPENAI_API_KEY,
            model=config.OPENAI_CHAT_MODEL,
            request_timeout=config.OPENAI_REQUEST_TIMEOUT_S,
        )
    else:
        logger.warning("OPENAI_API_KEY not set, persona generation and enrichment are disabled")

    sheets = None
    if config.GOOGLE_CLIENT_EMAIL and config.GOOGLE_PRIVATE_KEY:
        try:
            service = build_sheets_service(config.GOOGLE_CLIENT_EMAIL, config.GOOGLE_PRIVATE_KEY)
            sheets = SheetsClient(service, storage_spreadsheet_id=config.GOOGLE_SHEETS_ID)
        except ValueError as e:
            logger.error(f"Failed to initialize Google Sheets API: {e}")

    blob = None
    if config.BLOB_BUCKET:
        s3 = build_s3_client(config.AWS_ACCESS_KEY_ID, config.AWS_SECRET_ACCESS_KEY, config.AWS_DEFAULT_REGION)
        blob = BlobStorage(s3, config.BLOB_BUCKET, config.BLOB_PUBLIC_BASE_URL, config.AWS_DEFAULT_REGION)

    return Services(
        llm=llm,
        chat_llm=chat_llm,
        research=ResearchCollector(
            api_key=config.PERPLEXITY_API_KEY,
            model=config.PERPLEXITY_MODEL,
            timeout=config.RESEARCH_TIMEOUT_S,
        ),
        sheets=sheets,
        blob=blob,
        documents=DocumentLoader(),
        throttle=FixedDelayThrottle(config.ENRICHMENT_DELAY_S),
    )


@lru_cache(maxsize=1)
def _default_services() -> Services:
    return build_services(settings)


def get_services() -> Services:
    return _default_services()
