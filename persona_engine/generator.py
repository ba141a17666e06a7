"""
Persona Generator - evidence-based personas from research and uploaded documents
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .exceptions import InsufficientDataError
from .models import CampaignContext, SourceContext
from .openai_client import OpenAIClient
from .parsers import parse_persona_array
from .prompt_generator import PromptGenerator
from .source_context import build_source_context, check_data_sufficiency, summarize_sources
from .validation import validate_generated_personas

logger = logging.getLogger(__name__)

DEFAULT_PERSONA_COUNT = 5
GENERATION_MAX_TOKENS = 4000
GENERATION_TEMPERATURE = 0.3

READY_FOR_TESTING = "ready_for_testing"


def average_confidence(personas: List[Dict[str, Any]]) -> float:
    """Mean of the positive `confidence_score` values, 0 when there are none."""
    scores = []
    for persona in personas:
        try:
            score = float(persona.get("confidence_score") or 0)
        except (TypeError, ValueError):
            continue
        if score > 0:
            scores.append(score)
    if not scores:
        return 0.0
    return round(sum(scores) / len(scores), 4)


def attach_citations(personas: List[Dict[str, Any]], source_context: SourceContext) -> List[Dict[str, Any]]:
    """Record which sources and categories back each persona."""
    categories = source_context.populated()
    for persona in personas:
        data_sources = persona.get("data_sources")
        if not isinstance(data_sources, list):
            data_sources = [data_sources] if data_sources else []
        persona["source_citations"] = {
            "primary_sources": data_sources,
            "data_categories": categories,
            "confidence_factors": {
                "source_diversity": len(data_sources),
                "data_points": source_context.total_sources,
                "citation_coverage": "cited" if data_sources else "limited",
            },
        }
    return personas


class PersonaGenerator:
    """
    Generates a batch of personas with one model call.

    Flow: source context -> sufficiency check -> prompt -> model -> parse ->
    citations -> quality validation.
    """

    def __init__(self, llm: OpenAIClient, prompt_generator: Optional[PromptGenerator] = None):
        self.llm = llm
        self.prompt_generator = prompt_generator or PromptGenerator()

    def generate(
        self,
        campaign: CampaignContext,
        uploaded_data: Optional[Dict[str, Any]] = None,
        research_data: Optional[Dict[str, Any]] = None,
        count: int = DEFAULT_PERSONA_COUNT,
    ) -> Dict[str, Any]:
        """
        Generate `count` personas for the campaign.

        Raises:
            InsufficientDataError: When no demographic, social or consumer-behavior data is available
            ModelError: When the model call itself fails
        """
        tag = f"[{campaign.session_id}] " if campaign.session_id else ""

        source_context = build_source_context(uploaded_data, research_data)
        sufficiency = check_data_sufficiency(source_context)
        if not sufficiency["sufficient"]:
            raise InsufficientDataError(sufficiency["missing"])

        logger.info(
            f"{tag}Generating {count} personas from {source_context.total_sources} sources "
            f"({', '.join(sufficiency['available'])})"
        )

        prompt = self.prompt_generator.generation_prompt(campaign, source_context, count)
        text = self.llm.complete(prompt, max_tokens=GENERATION_MAX_TOKENS, temperature=GENERATION_TEMPERATURE)

        parsed = parse_persona_array(text)
        if not parsed.ok:
            logger.warning(f"{tag}{parsed.note}")
        elif parsed.note:
            logger.info(f"{tag}{parsed.note}")

        personas = attach_citations(parsed.value, source_context)
        kept, validation = validate_generated_personas(personas)
        for persona in kept:
            persona["status"] = READY_FOR_TESTING

        logger.info(f"{tag}Successfully generated {len(kept)} validated personas")

        return {
            "personas": kept,
            "sources_used": summarize_sources(source_context),
            "validation": validation,
            "data_sufficiency": sufficiency,
            "source_data_count": source_context.total_sources,
            "confidence": average_confidence(kept),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
