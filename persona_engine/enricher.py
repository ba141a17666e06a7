"""
Persona Enricher - two-stage enrichment of existing personas

Stage A adds social media presence, professional background and communication
preferences. Stage B adds legal-specific motivations, barriers and insights
grounded in uploaded documents and research.

Personas are processed one at a time. A failure on one persona is recorded on
that persona and the batch continues.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .models import CampaignContext, EnrichmentProgress, SourceContext
from .openai_client import OpenAIClient
from .parsers import parse_legal_enrichment, parse_social_enrichment
from .prompt_generator import PromptGenerator
from .throttle import FixedDelayThrottle, Throttle

logger = logging.getLogger(__name__)

SOCIAL_SOURCES = ["ai_research", "social_analysis", "professional_lookup"]
ENRICHED_BY = "persona_agent"
DEFAULT_ORIGINAL_SOURCE = "julius_sheet"

SOCIAL_MAX_TOKENS = 2000
LEGAL_MAX_TOKENS = 2000
LEGAL_TEMPERATURE = 0.2

STATUS_SOCIALLY_ENRICHED = "socially_enriched"
STATUS_LEGALLY_ENRICHED = "legally_enriched"
STATUS_FAILED = "failed"

# Keys a model reply may never overwrite
PROTECTED_KEYS = frozenset({
    "name",
    "enrichment",
    "enrichment_metadata",
    "status",
    "source",
    "source_citations",
    "validation",
    "imported_at",
})

# Structured replies for text fields land under these keys instead
STRUCTURED_KEYS = {
    "communication_style": "communication_preferences",
}

ProgressCallback = Callable[[EnrichmentProgress], None]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def merge_fields(
    persona: Dict[str, Any],
    fields: Dict[str, Any],
    overwrite: bool = True,
) -> Dict[str, Any]:
    """
    Overlay model-provided fields onto a copy of the persona.

    Nested dicts are merged one level deep so earlier enrichment is kept.
    A dict offered for a text field such as `communication_style` is stored
    under its structured key so the text value survives export.
    With `overwrite=False` only keys the persona lacks are filled.
    """
    merged = dict(persona)
    for key, value in fields.items():
        if isinstance(value, dict) and key in STRUCTURED_KEYS:
            key = STRUCTURED_KEYS[key]
        if key in PROTECTED_KEYS:
            continue
        existing = merged.get(key)
        if not overwrite and existing not in (None, "", [], {}):
            continue
        if isinstance(existing, dict) and isinstance(value, dict):
            merged[key] = {**existing, **value}
        else:
            merged[key] = value
    return merged


def persona_confidence(persona: Dict[str, Any]) -> float:
    """Generation confidence if present, else the stage A enrichment confidence."""
    value = persona.get("confidence_score")
    if not value:
        enrichment = persona.get("enrichment")
        if isinstance(enrichment, dict):
            value = enrichment.get("confidence_score")
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


class PersonaEnricher:
    """Sequential, throttled enrichment of persona batches."""

    def __init__(
        self,
        llm: OpenAIClient,
        throttle: Optional[Throttle] = None,
        prompt_generator: Optional[PromptGenerator] = None,
    ):
        self.llm = llm
        self.throttle = throttle if throttle is not None else FixedDelayThrottle()
        self.prompt_generator = prompt_generator or PromptGenerator()

    def _report(self, callback: Optional[ProgressCallback], **kwargs):
        if callback is None:
            return
        try:
            callback(EnrichmentProgress(**kwargs))
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")

    # ---------- Stage A ----------

    def enrich_social_single(self, persona: Dict[str, Any], campaign: Optional[CampaignContext]) -> Dict[str, Any]:
        """Enrich one persona. Model errors propagate; parse errors fall back."""
        prompt = self.prompt_generator.social_enrichment_prompt(persona, campaign)
        text = self.llm.complete(prompt, max_tokens=SOCIAL_MAX_TOKENS)
        parsed = parse_social_enrichment(text)
        reply = parsed.value

        # fallback data only fills gaps
        enriched = merge_fields(persona, reply.enriched_fields, overwrite=parsed.ok)
        enriched["enrichment"] = {
            "status": "enriched",
            "sources": list(SOCIAL_SOURCES),
            "confidence_score": reply.confidence,
            "enriched_fields": reply.fields_enriched,
            "enriched_at": _now(),
            "research_insights": reply.insights,
        }
        if not parsed.ok:
            enriched["enrichment"]["parse_note"] = parsed.note
        enriched["status"] = STATUS_SOCIALLY_ENRICHED
        return enriched

    def enrich_social(
        self,
        personas: List[Dict[str, Any]],
        campaign: Optional[CampaignContext] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> List[Dict[str, Any]]:
        """
        Stage A over a batch. Always returns one persona per input, in order.

        Every returned persona has `enrichment.status` of `enriched` or `failed`.
        """
        tag = f"[{campaign.session_id}] " if campaign and campaign.session_id else ""
        total = len(personas)
        logger.info(f"{tag}Starting social enrichment for {total} personas")

        results = []
        for i, persona in enumerate(personas):
            if i > 0:
                self.throttle.wait()

            name = persona.get("name")
            self._report(progress_callback, current=i + 1, total=total, persona_name=name, status="enriching")
            try:
                logger.info(f"{tag}Enriching persona {i + 1}/{total}: {name}")
                results.append(self.enrich_social_single(persona, campaign))
                self._report(progress_callback, current=i + 1, total=total, persona_name=name, status="completed")
            except Exception as e:
                logger.error(f"{tag}Failed to enrich persona {name}: {e}")
                failed = dict(persona)
                failed["enrichment"] = {
                    "status": "failed",
                    "error": str(e),
                    "enriched_at": _now(),
                }
                failed["status"] = STATUS_FAILED
                results.append(failed)
                self._report(
                    progress_callback, current=i + 1, total=total, persona_name=name, status="failed", error=str(e)
                )

        logger.info(f"{tag}Completed social enrichment for {len(results)} personas")
        return results

    # ---------- Stage B ----------

    def enrich_legal_single(
        self,
        persona: Dict[str, Any],
        campaign: Optional[CampaignContext],
        source_context: SourceContext,
    ) -> Dict[str, Any]:
        prompt = self.prompt_generator.legal_enrichment_prompt(persona, campaign, source_context)
        text = self.llm.complete(prompt, max_tokens=LEGAL_MAX_TOKENS, temperature=LEGAL_TEMPERATURE)
        reply = parse_legal_enrichment(text).value

        enriched = merge_fields(persona, reply.additions)
        enriched["document_insights"] = reply.insights
        enriched = merge_fields(enriched, {"legal_profile": reply.legal_profile})
        enriched["enrichment_metadata"] = {
            "enriched_by": ENRICHED_BY,
            "enriched_at": _now(),
            "source_data_points": source_context.total_sources,
            "confidence_improvement": reply.confidence_delta,
            "original_source": persona.get("source") or DEFAULT_ORIGINAL_SOURCE,
        }
        if persona.get("status") != STATUS_FAILED:
            enriched["status"] = STATUS_LEGALLY_ENRICHED
        return enriched

    def enrich_legal(
        self,
        personas: List[Dict[str, Any]],
        campaign: Optional[CampaignContext],
        source_context: SourceContext,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> Dict[str, Any]:
        """
        Stage B over a batch.

        Returns `personas`, `source_data_count`, `confidence` (mean of the positive
        persona confidences, 0-1) and `has_media_insights`.
        """
        tag = f"[{campaign.session_id}] " if campaign and campaign.session_id else ""
        total = len(personas)
        logger.info(f"{tag}Enriching {total} existing personas with document insights")

        results = []
        for i, persona in enumerate(personas):
            if i > 0:
                self.throttle.wait()

            name = persona.get("name")
            self._report(progress_callback, current=i + 1, total=total, persona_name=name, status="enriching")
            try:
                results.append(self.enrich_legal_single(persona, campaign, source_context))
                self._report(progress_callback, current=i + 1, total=total, persona_name=name, status="completed")
            except Exception as e:
                logger.error(f"{tag}Failed to legally enrich persona {name}: {e}")
                failed = dict(persona)
                failed["enrichment_metadata"] = {
                    "enriched_by": ENRICHED_BY,
                    "enriched_at": _now(),
                    "enrichment_error": str(e),
                    "original_source": persona.get("source") or DEFAULT_ORIGINAL_SOURCE,
                }
                failed["status"] = STATUS_FAILED
                results.append(failed)
                self._report(
                    progress_callback, current=i + 1, total=total, persona_name=name, status="failed", error=str(e)
                )

        scores = [score for score in (persona_confidence(p) for p in results) if score > 0]
        confidence = round(sum(scores) / len(scores), 4) if scores else 0.0

        logger.info(f"{tag}Completed persona enrichment: {len(results)} personas processed")
        return {
            "personas": results,
            "source_data_count": source_context.total_sources,
            "confidence": confidence,
            "has_media_insights": any(
                item.metadata.get("type") == "document" for item in source_context.client_data
            ),
        }
