"""
Persona Engine - generation and enrichment of legal-campaign personas

Module for generating evidence-based personas with OpenAI GPT models and
enriching existing personas with social and legal insights.

Main functions:
- PersonaGenerator - batch generation from research and uploaded documents
- PersonaEnricher - two-stage, throttled enrichment of existing personas
- validate_imported_personas() - data quality check for imported rows
"""

from .enricher import PersonaEnricher
from .exceptions import (
    APIError,
    ConfigurationError,
    InsufficientDataError,
    ModelError,
    PersonaEngineError,
    RateLimitError,
    TimeoutError,
)
from .generator import PersonaGenerator
from .models import CampaignContext, EnrichmentProgress, SourceContext, SourceItem
from .openai_client import OpenAIClient
from .prompt_generator import PromptGenerator
from .source_context import build_source_context, check_data_sufficiency
from .throttle import FixedDelayThrottle, Throttle, TokenBucketThrottle
from .validation import validate_generated_personas, validate_imported_personas

__version__ = "1.0.0"
__author__ = "Persona Studio Team"

__all__ = [
    "PersonaGenerator",
    "PersonaEnricher",
    "OpenAIClient",
    "PromptGenerator",
    "CampaignContext",
    "SourceContext",
    "SourceItem",
    "EnrichmentProgress",
    "build_source_context",
    "check_data_sufficiency",
    "validate_generated_personas",
    "validate_imported_personas",
    "Throttle",
    "FixedDelayThrottle",
    "TokenBucketThrottle",
    "PersonaEngineError",
    "ConfigurationError",
    "InsufficientDataError",
    "ModelError",
    "RateLimitError",
    "APIError",
    "TimeoutError",
]
