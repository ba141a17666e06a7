"""
Source context assembly - turns uploaded documents and research results into
categorized prompt material.
"""
import json
from typing import Any, Dict, List, Optional

from .models import SourceContext, SourceItem

# Categories that count towards data sufficiency. client_data is prompt material only.
SUFFICIENCY_CATEGORIES = ("demographic_data", "social_insights", "consumer_behavior")

RESEARCH_SOURCE = "perplexity_research"

# (uploaded key, category, source name, type)
_UPLOADED_MAPPING = (
    ("mri_data", "demographic_data", "mri_file", "demographic"),
    ("targetsmart_data", "demographic_data", "targetsmart_file", "demographic"),
    ("client_data", "client_data", "client_file", "client"),
)

# (research key, category, type)
_RESEARCH_MAPPING = (
    ("demographics", "demographic_data", "demographic"),
    ("social_insights", "social_insights", "social"),
    ("consumer_behavior", "consumer_behavior", "behavior"),
)


def _serialize(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        value = {k: v for k, v in value.items() if not str(k).startswith("_")}
    return json.dumps(value, default=str)


def _usable(value: Any) -> bool:
    if not value:
        return False
    if isinstance(value, dict) and "error" in value:
        return False
    return True


def build_source_context(
    uploaded_data: Optional[Dict[str, Any]] = None,
    research_data: Optional[Dict[str, Any]] = None,
) -> SourceContext:
    """
    Categorize uploaded data and research results.

    Uploaded summaries (`mri_data`, `targetsmart_data`, `client_data`) and
    downloaded `documents` are used as-is; research topics that carry an
    `error` marker are skipped.
    """
    context = SourceContext()

    if uploaded_data:
        for key, category, source, kind in _UPLOADED_MAPPING:
            data = uploaded_data.get(key)
            if not data:
                continue
            if isinstance(data, dict) and data.get("summary"):
                data = data["summary"]
            getattr(context, category).append(
                SourceItem(content=_serialize(data), metadata={"source": source, "type": kind})
            )

        for doc in uploaded_data.get("documents") or []:
            summary = doc.get("summary")
            if not summary:
                continue
            context.client_data.append(
                SourceItem(
                    content=_serialize(summary),
                    metadata={"source": doc.get("filename") or "uploaded_document", "type": "document"},
                )
            )

    if research_data and "error" not in research_data:
        for key, category, kind in _RESEARCH_MAPPING:
            data = research_data.get(key)
            if not _usable(data):
                continue
            getattr(context, category).append(
                SourceItem(content=_serialize(data), metadata={"source": RESEARCH_SOURCE, "type": kind})
            )

    return context


def check_data_sufficiency(context: SourceContext) -> Dict[str, Any]:
    """
    Score how much of the required evidence is present.

    `confidence` is the populated fraction of SUFFICIENCY_CATEGORIES on 0-100;
    at least one populated category is sufficient.
    """
    available: List[str] = []
    missing: List[str] = []
    for category in SUFFICIENCY_CATEGORIES:
        if getattr(context, category):
            available.append(category)
        else:
            missing.append(category)

    return {
        "sufficient": len(available) >= 1,
        "missing": missing,
        "available": available,
        "confidence": round(len(available) / len(SUFFICIENCY_CATEGORIES) * 100, 2),
    }


def summarize_sources(context: SourceContext) -> Dict[str, Any]:
    """Document counts and distinct sources per populated category."""
    categories = {}
    for name, items in context.categories().items():
        if not items:
            continue
        sources = []
        for item in items:
            source = item.metadata.get("source")
            if source and source not in sources:
                sources.append(source)
        categories[name] = {"document_count": len(items), "sources": sources}

    quality_indicators = []
    if context.total_sources >= 3:
        quality_indicators.append("Sufficient data volume")
    if len(categories) >= 2:
        quality_indicators.append("Diverse data sources")

    return {
        "total_documents": context.total_sources,
        "categories": categories,
        "quality_indicators": quality_indicators,
    }
