"""
Parsers for free-form model replies.

Every parser returns a ParseResult and never raises: when the reply cannot be
decoded, or lacks the keys its reply type requires, a documented fallback value
is returned with ok=False and a human-readable note.
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from .models import (
    LegalEnrichmentReply,
    ParseResult,
    QuickPersonaReply,
    SocialEnrichmentReply,
    clamp,
)

logger = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 0.3

_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")
_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")


def _strip_fences(text: str) -> str:
    t = text.strip()
    t = re.sub(r"^\s*```[a-zA-Z]*\s*", "", t)
    t = re.sub(r"\s*```\s*$", "", t)
    return t


def _balanced_span(text: str, opener: str, closer: str) -> Optional[str]:
    """Return the first balanced opener...closer substring, skipping brackets inside strings."""
    start = text.find(opener)
    if start < 0:
        return None
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def extract_json(text: Optional[str], array: bool = False) -> Any:
    """
    Locate and decode the JSON object (or array) embedded in model text.

    Tries the widest first-opener..last-closer span, then the first balanced
    span. Raises ValueError when nothing decodes.
    """
    if not text:
        raise ValueError("Empty model response")

    cleaned = _strip_fences(text)
    opener, closer = ("[", "]") if array else ("{", "}")
    pattern = _ARRAY_PATTERN if array else _OBJECT_PATTERN
    expected = list if array else dict

    candidates = []
    match = pattern.search(cleaned)
    if match:
        candidates.append(match.group(0))
    balanced = _balanced_span(cleaned, opener, closer)
    if balanced and balanced not in candidates:
        candidates.append(balanced)

    if not candidates:
        raise ValueError(f"No JSON {'array' if array else 'object'} found in model response")

    last_error = None
    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError as e:
            last_error = e
            continue
        if isinstance(data, expected):
            return data
    raise ValueError(f"Could not decode JSON from model response: {last_error}")


def social_enrichment_fallback() -> SocialEnrichmentReply:
    return SocialEnrichmentReply(
        enriched_fields={
            "social_media_profiles": {"facebook": {"active": True, "frequency": "weekly"}},
            "communication_preferences": {"preferred_channels": ["email"], "formality_level": "professional"},
        },
        confidence=FALLBACK_CONFIDENCE,
        fields_enriched=["basic_fallback"],
        insights=["Enrichment failed, using basic fallback data"],
    )


def legal_enrichment_fallback() -> LegalEnrichmentReply:
    return LegalEnrichmentReply(
        additions={
            "legal_motivations": ["seeking legal resolution"],
            "legal_barriers": ["cost concerns", "complexity fears"],
        },
        insights=["Enrichment parsing failed, using fallback data"],
        legal_profile={"likely_legal_experience": "limited"},
        confidence_delta=0.0,
    )


def parse_social_enrichment(text: Optional[str]) -> ParseResult:
    """Parse a stage A reply. Requires `enrichedFields` and `confidence`."""
    try:
        data = extract_json(text)
        if "enrichedFields" not in data or "confidence" not in data:
            raise ValueError("Invalid enrichment response structure")
        reply = SocialEnrichmentReply.model_validate(data)
        return ParseResult(value=reply)
    except (ValueError, PydanticValidationError) as e:
        logger.warning(f"Failed to parse enrichment response: {e}")
        return ParseResult(value=social_enrichment_fallback(), ok=False, note=str(e))


def parse_legal_enrichment(text: Optional[str]) -> ParseResult:
    """Parse a stage B reply. Every key is optional; only an undecodable reply falls back."""
    try:
        data = extract_json(text)
        reply = LegalEnrichmentReply.model_validate(data)
        return ParseResult(value=reply)
    except (ValueError, PydanticValidationError) as e:
        logger.warning(f"Failed to parse legal enrichment response: {e}")
        return ParseResult(value=legal_enrichment_fallback(), ok=False, note=str(e))


def normalize_generation_confidence(value: Any) -> float:
    """Generation replies declare confidence on 0-100; store it on the 0-1 scale."""
    return round(clamp(value, 0.0, 100.0, 0.0) / 100.0, 4)


def parse_persona_array(text: Optional[str]) -> ParseResult:
    """
    Parse a generation reply into a list of persona dicts.

    Non-object entries are dropped. The fallback is an empty list.
    """
    try:
        data = extract_json(text, array=True)
    except ValueError as e:
        logger.warning(f"Failed to parse persona response: {e}")
        return ParseResult(value=[], ok=False, note=f"Persona parsing failed: {e}")

    personas: List[Dict[str, Any]] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        persona = dict(item)
        if "confidence_score" in persona:
            persona["confidence_score"] = normalize_generation_confidence(persona["confidence_score"])
        personas.append(persona)

    dropped = len(data) - len(personas)
    note = f"Dropped {dropped} malformed persona entries" if dropped else None
    return ParseResult(value=personas, note=note)


def quick_persona_fallback(description: str) -> QuickPersonaReply:
    return QuickPersonaReply(
        name="Alex",
        bio=description,
        communication_style="Direct and practical",
        motivations=["Getting help with legal issue"],
        barriers=["Cost concerns", "Process complexity"],
        case_type="General Legal",
        example_quote="I need to understand my options.",
    )


def parse_quick_persona(text: Optional[str], description: str) -> ParseResult:
    try:
        data = extract_json(text)
        return ParseResult(value=QuickPersonaReply.model_validate(data))
    except (ValueError, PydanticValidationError) as e:
        logger.warning(f"Quick persona generation failed: {e}")
        return ParseResult(value=quick_persona_fallback(description), ok=False, note=str(e))


def parse_research_payload(text: Optional[str], request_type: str) -> Dict[str, Any]:
    """
    Decode a research reply into a dict tagged with its request type.

    Unparsable content is kept as raw text under an `error` marker.
    """
    try:
        data = extract_json(text)
    except ValueError as e:
        logger.warning(f"Could not parse JSON for {request_type}, returning raw text")
        return {
            "_raw_response": text,
            "_request_type": request_type,
            "_parse_error": str(e),
            "error": "Could not parse structured response",
        }
    data["_raw_response"] = text
    data["_request_type"] = request_type
    return data
