from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # Base
    PROJECT_NAME: str = "Persona Studio API"

    # OpenAI
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_CHAT_MODEL: str = "gpt-4o-mini"
    OPENAI_REQUEST_TIMEOUT_S: float = 60

    # Perplexity research
    PERPLEXITY_API_KEY: Optional[str] = None
    PERPLEXITY_MODEL: str = "sonar-pro"
    RESEARCH_TIMEOUT_S: float = 30

    # Google Sheets service account
    GOOGLE_CLIENT_EMAIL: Optional[str] = None
    GOOGLE_PRIVATE_KEY: Optional[str] = None
    GOOGLE_SHEETS_ID: Optional[str] = None

    # AWS Configuration
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_DEFAULT_REGION: Optional[str] = None
    BLOB_BUCKET: Optional[str] = None
    BLOB_PUBLIC_BASE_URL: Optional[str] = None

    # Enrichment pacing
    ENRICHMENT_DELAY_S: float = 1.0

    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
