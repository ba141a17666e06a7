"""
Persona validators.

Two independent checks:

- generated personas are scored for completeness and evidence quality and only
  the ones worth testing are kept;
- imported spreadsheet rows are checked for a name (hard error) and for data
  quality problems (soft warnings).
"""
import logging
from typing import Any, Dict, List, Tuple

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ["name", "age", "bio", "motivations", "barriers", "communication_style"]
MIN_QUALITY_SCORE = 50
HIGH_CONFIDENCE = 0.7
LONG_BIO = 100

MIN_AGE = 0
MAX_AGE = 120

LIST_FIELDS = ("interests", "motivations", "barriers")


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def _has_citations(persona: Dict[str, Any]) -> bool:
    citations = persona.get("source_citations")
    if not isinstance(citations, dict):
        return False
    return bool(citations.get("primary_sources"))


def score_generated_persona(persona: Dict[str, Any]) -> Dict[str, Any]:
    """
    Completeness and quality score (0-100 points) for one generated persona.

    citations +30, confidence above 0.7 +25, all required fields +25,
    bio longer than 100 characters +20.
    """
    missing = [field for field in REQUIRED_FIELDS if _is_blank(persona.get(field))]
    complete = not missing

    score = 0
    if _has_citations(persona):
        score += 30
    try:
        confidence = float(persona.get("confidence_score") or 0)
    except (TypeError, ValueError):
        confidence = 0.0
    if confidence > HIGH_CONFIDENCE:
        score += 25
    if complete:
        score += 25
    bio = persona.get("bio")
    if isinstance(bio, str) and len(bio) > LONG_BIO:
        score += 20

    return {"complete": complete, "missing_fields": missing, "quality_score": score}


def validate_generated_personas(personas: List[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
    """
    Keep generated personas that are complete and score at least 50.

    Kept personas carry their `validation` block. Returns the kept list and a
    batch summary.
    """
    kept = []
    rejected = []
    for index, persona in enumerate(personas, start=1):
        validation = score_generated_persona(persona)
        if validation["complete"] and validation["quality_score"] >= MIN_QUALITY_SCORE:
            persona["validation"] = validation
            kept.append(persona)
        else:
            logger.warning(f"Persona {index} failed validation: {validation}")
            rejected.append({
                "persona_name": persona.get("name") or f"Persona {index}",
                "missing_fields": validation["missing_fields"],
                "quality_score": validation["quality_score"],
            })

    summary = {
        "total_generated": len(personas),
        "valid_personas": len(kept),
        "rejected_personas": len(rejected),
        "rejected": rejected,
    }
    return kept, summary


def _check_imported(persona: Dict[str, Any]) -> Tuple[List[str], List[str]]:
    errors = []
    warnings = []

    name = persona.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append("Name is required")

    if "age" in persona and persona["age"] is not None:
        age = persona["age"]
        try:
            numeric_age = float(age)
        except (TypeError, ValueError):
            numeric_age = None
        if numeric_age is None or numeric_age != numeric_age or not MIN_AGE <= numeric_age <= MAX_AGE:
            warnings.append(f"Age {age} seems unusual")
    else:
        warnings.append("Age not provided")

    if _is_blank(persona.get("location")):
        warnings.append("Location not provided")
    if _is_blank(persona.get("occupation")):
        warnings.append("Occupation not provided")
    if _is_blank(persona.get("bio")) and _is_blank(persona.get("description")):
        warnings.append("No biography or description provided")
    if _is_blank(persona.get("interests")):
        warnings.append("No interests provided")

    for field in LIST_FIELDS:
        value = persona.get(field)
        if value and not isinstance(value, list):
            warnings.append(f"{field.capitalize()} should be a list")

    return errors, warnings


def validate_imported_personas(personas: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Check imported rows.

    A persona without a name is invalid and excluded from `valid`; every other
    problem is a warning and the persona is kept. Rows are numbered from 1.
    """
    result = {
        "valid": [],
        "warnings": [],
        "errors": [],
        "summary": {
            "total_imported": len(personas),
            "valid_personas": 0,
            "personas_with_warnings": 0,
            "invalid_personas": 0,
        },
    }

    for row, persona in enumerate(personas, start=1):
        errors, warnings = _check_imported(persona)
        if errors:
            result["errors"].append({
                "persona_name": persona.get("name") or f"Row {row}",
                "row": row,
                "errors": errors,
            })
            result["summary"]["invalid_personas"] += 1
            continue

        result["valid"].append(persona)
        result["summary"]["valid_personas"] += 1
        if warnings:
            result["warnings"].append({
                "persona_name": persona.get("name"),
                "row": row,
                "warnings": warnings,
            })
            result["summary"]["personas_with_warnings"] += 1

    return result
