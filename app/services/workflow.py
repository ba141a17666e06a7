"""
Persona workflows behind POST /generate.

Generation: documents -> research -> generator -> optional storage append.
Enrichment: sheet import -> import validation -> documents -> research ->
social enrichment -> legal enrichment -> export (and optional in-place update).

Failures that map to a client-facing error raise WorkflowError carrying the
HTTP status, error code and body extras.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

from app.dependencies import Services
from app.schemas.personas import GenerateRequest
from app.services.research import RESEARCH_TOPICS
from app.services.sheets import EmptySheetError, SheetAccessError, SheetsError, SheetUrlError
from persona_engine.enricher import PersonaEnricher
from persona_engine.exceptions import ConfigurationError, InsufficientDataError
from persona_engine.generator import PersonaGenerator
from persona_engine.models import CampaignContext
from persona_engine.source_context import build_source_context
from persona_engine.validation import validate_imported_personas

logger = logging.getLogger(__name__)

SHEET_URL_PREFIX = "https://docs.google.com/spreadsheets/d/"
ENRICHMENT_STEPS = ["social_research", "document_analysis", "legal_insights"]
VALIDATED = "validated"

SHEET_TROUBLESHOOTING = {
    "steps": [
        "Verify the Google Sheets URL is correct",
        "Ensure the sheet is shared publicly (Anyone with the link > Viewer) or with the service account",
        "Check that the sheet contains persona data with proper headers",
        "Make sure the sheet is not empty",
    ]
}


class WorkflowError(Exception):
    """A workflow failure with its HTTP status and error code."""

    def __init__(self, status_code: int, error: str, message: str, **extra: Any):
        self.status_code = status_code
        self.error = error
        self.message = message
        self.extra = {k: v for k, v in extra.items() if v is not None}
        super().__init__(message)


def new_session_id() -> str:
    return uuid.uuid4().hex[:6]


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _research_categories(research: Dict[str, Any]) -> List[str]:
    return [
        topic for topic in RESEARCH_TOPICS
        if isinstance(research.get(topic), dict) and "error" not in research[topic]
    ]


def _validate_request(request: GenerateRequest, session_id: str):
    missing = request.missing_fields
    if missing:
        logger.info(f"[{session_id}] Validation failed: missing {', '.join(missing)}")
        raise WorkflowError(
            400,
            "Missing required fields",
            "Matter, keywords, and target description are required",
            details={"missing": missing},
        )

    if request.enrichment_mode and not request.julius_personas_sheet_url.startswith(SHEET_URL_PREFIX):
        logger.info(f"[{session_id}] Validation failed: invalid Google Sheets URL")
        raise WorkflowError(
            400,
            "Invalid Google Sheets URL",
            f"Please provide a valid Google Sheets URL ({SHEET_URL_PREFIX}...)",
        )


def _gather_context(services: Services, request: GenerateRequest, session_id: str):
    documents = services.documents.load_all(request.complaint_file_url, request.research_file_url)
    logger.info(f"[{session_id}] Documents processed: {len(documents)}")

    research = services.research.collect(request.matter, request.keywords, request.target_description)
    logger.info(f"[{session_id}] Research categories: {', '.join(_research_categories(research)) or 'none'}")
    return documents, research


def run_generation(services: Services, request: GenerateRequest, session_id: str) -> Dict[str, Any]:
    campaign = CampaignContext(
        matter=request.matter,
        keywords=request.keywords,
        target_description=request.target_description,
        session_id=session_id,
    )
    llm = services.require_llm()

    documents, research = _gather_context(services, request, session_id)

    try:
        result = PersonaGenerator(llm).generate(
            campaign,
            uploaded_data={"documents": documents},
            research_data=research,
            count=request.persona_count,
        )
    except InsufficientDataError as e:
        logger.info(f"[{session_id}] Persona generation failed: {e}")
        raise WorkflowError(422, "INSUFFICIENT_DATA", str(e), details={"missing": e.missing})

    personas = result["personas"]
    for i, persona in enumerate(personas, start=1):
        logger.info(
            f"[{session_id}] Persona {i}: {persona.get('name')} (age {persona.get('age')}) "
            f"- confidence: {persona.get('confidence_score')}"
        )

    storage = None
    sheets = services.sheets
    if personas and sheets is not None and sheets.storage_spreadsheet_id:
        try:
            storage = sheets.append_personas(personas, campaign.model_dump())
        except SheetsError as e:
            logger.error(f"[{session_id}] Failed to store personas in Google Sheets: {e}")
            storage = {"success": False, "error": str(e)}

    response = {
        "success": True,
        "sessionId": session_id,
        "mode": "generation",
        "personas": personas,
        "dataAnalysis": {
            "totalDataPoints": result["source_data_count"],
            "confidence": result["confidence"],
            "filesProcessed": len(documents),
            "researchCategories": _research_categories(research),
            "dataSufficiency": result["data_sufficiency"],
            "sourcesUsed": result["sources_used"],
            "validation": result["validation"],
        },
        "processingTime": utc_now(),
    }
    if storage is not None:
        response["storage"] = storage
    return response


def _import_personas(services: Services, sheet_url: str, session_id: str) -> List[Dict[str, Any]]:
    sheets = services.require_sheets()
    try:
        personas = sheets.import_rows(sheet_url)
    except SheetUrlError as e:
        raise WorkflowError(400, "Invalid Google Sheets URL Format", f"URL validation failed: {e}")
    except EmptySheetError as e:
        logger.info(f"[{session_id}] No personas found in source sheet: {e}")
        raise WorkflowError(
            400,
            "EMPTY_PERSONAS_SHEET",
            "No personas found in the personas sheet",
            details="The sheet appears to be empty or contains no recognizable persona data.",
            troubleshooting={
                "expectedFormat": "The sheet should have headers like: name, age, location, occupation, interests, etc.",
                "minRequirements": "At least a name column with persona names is required",
            },
        )
    except SheetAccessError as e:
        logger.error(f"[{session_id}] Failed to import personas from sheet: {e}")
        message, details = "Failed to access personas sheet", str(e)
        if e.status == 403:
            message = "Permission denied accessing personas sheet"
            details = ("Please ensure the Google Sheet is shared publicly or with our service account. "
                       "Go to Share > General access > Anyone with the link > Viewer.")
        elif e.status == 404:
            message = "Personas sheet not found"
            details = "The Google Sheet URL appears to be invalid or the sheet has been deleted."
        raise WorkflowError(400, "SHEET_ACCESS_FAILED", message, details=details, troubleshooting=SHEET_TROUBLESHOOTING)

    if not personas:
        raise WorkflowError(400, "EMPTY_PERSONAS_SHEET", "No personas found in the personas sheet")
    return personas


def run_enrichment(services: Services, request: GenerateRequest, session_id: str) -> Dict[str, Any]:
    campaign = CampaignContext(
        matter=request.matter,
        keywords=request.keywords,
        target_description=request.target_description,
        session_id=session_id,
    )
    llm = services.require_llm()
    sheet_url = request.julius_personas_sheet_url

    imported = _import_personas(services, sheet_url, session_id)
    logger.info(f"[{session_id}] Imported {len(imported)} personas from source sheet")

    validation = validate_imported_personas(imported)
    summary = validation["summary"]
    logger.info(
        f"[{session_id}] Validation: {summary['valid_personas']} valid, "
        f"{summary['personas_with_warnings']} with warnings, {summary['invalid_personas']} invalid"
    )
    if summary["valid_personas"] == 0:
        raise WorkflowError(
            400,
            "NO_VALID_PERSONAS",
            "No valid personas found in the personas sheet after validation",
            details={
                "total_imported": summary["total_imported"],
                "validation_errors": validation["errors"][:5],
            },
        )
    valid = []
    for persona in validation["valid"]:
        persona = dict(persona)
        persona["status"] = VALIDATED
        valid.append(persona)

    documents, research = _gather_context(services, request, session_id)

    enricher = PersonaEnricher(llm, throttle=services.throttle)
    social = enricher.enrich_social(valid, campaign)
    source_context = build_source_context({"documents": documents}, research)
    legal = enricher.enrich_legal(social, campaign, source_context)
    final = legal["personas"]

    export = services.require_sheets().export_rows(final, campaign.model_dump())
    logger.info(f"[{session_id}] Exported to: {export['sheet_url']}")

    source_update = None
    if request.update_source_sheet:
        try:
            source_update = services.require_sheets().update_in_place(final, sheet_url)
        except SheetsError as e:
            logger.error(f"[{session_id}] Source sheet update failed: {e}")
            source_update = {"success": False, "error": str(e)}

    export_results = {
        "exported_sheet_url": export["sheet_url"],
        "exported_sheet_id": export["spreadsheet_id"],
        "rows_exported": export["rows_exported"],
    }
    if source_update is not None:
        export_results["source_sheet_update"] = source_update

    return {
        "success": True,
        "sessionId": session_id,
        "mode": "enrichment",
        "personas": final,
        "enrichmentSummary": {
            "imported_count": len(imported),
            "valid_count": summary["valid_personas"],
            "social_enriched_count": sum(
                1 for p in social if (p.get("enrichment") or {}).get("status") == "enriched"
            ),
            "final_enriched_count": len(final),
            "validation_warnings": len(validation["warnings"]),
            "validation_errors": len(validation["errors"]),
            "enrichment_steps": ENRICHMENT_STEPS,
        },
        "dataAnalysis": {
            "documentsProcessed": len(documents),
            "researchCategories": _research_categories(research),
            "source_sheet": sheet_url,
            "legal_confidence": legal["confidence"],
            "has_media_insights": legal["has_media_insights"],
        },
        "exportResults": export_results,
        "processingTime": utc_now(),
    }


def run_workflow(services: Services, request: GenerateRequest, session_id: str) -> Dict[str, Any]:
    """
    Validate the request and run the selected mode.

    Raises WorkflowError for every failure; unexpected errors become
    PROCESSING_FAILED (generation) or ENRICHMENT_FAILED (enrichment).
    """
    _validate_request(request, session_id)

    mode = "enrichment" if request.enrichment_mode else "generation"
    logger.info(f"[{session_id}] Workflow mode: {mode.upper()}")
    try:
        if request.enrichment_mode:
            return run_enrichment(services, request, session_id)
        return run_generation(services, request, session_id)
    except WorkflowError:
        raise
    except ConfigurationError as e:
        logger.error(f"[{session_id}] Configuration error: {e}")
        raise WorkflowError(500, "CONFIGURATION_ERROR", str(e))
    except Exception as e:
        logger.exception(f"[{session_id}] {mode.capitalize()} workflow failed: {e}")
        error = "ENRICHMENT_FAILED" if request.enrichment_mode else "PROCESSING_FAILED"
        raise WorkflowError(500, error, str(e))
