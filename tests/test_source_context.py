import json

from conftest import RESEARCH_BUNDLE

from persona_engine.source_context import build_source_context, check_data_sufficiency, summarize_sources


def test_research_topics_are_categorized_and_errors_skipped():
    context = build_source_context(None, RESEARCH_BUNDLE)

    assert len(context.demographic_data) == 1
    assert len(context.social_insights) == 1
    assert len(context.consumer_behavior) == 1
    assert context.client_data == []
    assert context.total_sources == 3
    assert context.social_insights[0].metadata == {"source": "perplexity_research", "type": "social"}


def test_private_keys_are_dropped_from_content():
    research = {"demographics": {"age": "35-55", "_raw_response": "raw", "_request_type": "demographics"}}
    context = build_source_context(None, research)
    assert json.loads(context.demographic_data[0].content) == {"age": "35-55"}


def test_whole_bundle_error_yields_nothing():
    context = build_source_context(None, {"error": "Research API not configured"})
    assert context.total_sources == 0


def test_uploaded_data_and_documents():
    uploaded = {
        "mri_data": {"summary": "MRI segments"},
        "targetsmart_data": "voter file extract",
        "client_data": None,
        "documents": [
            {"filename": "complaint.pdf", "summary": "Complaint text"},
            {"filename": "empty.txt", "summary": ""},
        ],
    }
    context = build_source_context(uploaded, None)

    assert [item.content for item in context.demographic_data] == ["MRI segments", "voter file extract"]
    assert [item.metadata["source"] for item in context.demographic_data] == ["mri_file", "targetsmart_file"]
    assert len(context.client_data) == 1
    assert context.client_data[0].metadata == {"source": "complaint.pdf", "type": "document"}


def test_sufficiency_needs_one_category():
    empty = check_data_sufficiency(build_source_context())
    assert empty == {
        "sufficient": False,
        "missing": ["demographic_data", "social_insights", "consumer_behavior"],
        "available": [],
        "confidence": 0.0,
    }

    one = check_data_sufficiency(build_source_context(None, {"social_insights": {"pain_points": []}}))
    assert one["sufficient"]
    assert one["available"] == ["social_insights"]
    assert one["confidence"] == 33.33


def test_client_documents_alone_are_not_sufficient():
    context = build_source_context({"documents": [{"filename": "a.txt", "summary": "text"}]})
    assert not check_data_sufficiency(context)["sufficient"]


def test_summarize_sources():
    context = build_source_context({"client_data": "notes"}, RESEARCH_BUNDLE)
    summary = summarize_sources(context)

    assert summary["total_documents"] == 4
    assert summary["categories"]["client_data"] == {"document_count": 1, "sources": ["client_file"]}
    assert summary["categories"]["demographic_data"]["sources"] == ["perplexity_research"]
    assert summary["quality_indicators"] == ["Sufficient data volume", "Diverse data sources"]
