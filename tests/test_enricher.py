import pytest

from conftest import RESEARCH_BUNDLE, FakeLLM, legal_reply, social_reply

from persona_engine.enricher import PersonaEnricher, merge_fields, persona_confidence
from persona_engine.exceptions import APIError, RateLimitError
from persona_engine.models import CampaignContext
from persona_engine.source_context import build_source_context

CAMPAIGN = CampaignContext(
    matter="Data breach",
    keywords="data breach",
    target_description="Retail customers",
    session_id="abc123",
)


class CountingThrottle:
    def __init__(self):
        self.waits = 0

    def wait(self):
        self.waits += 1
        return 0.0


def _imported(name, **extra):
    persona = {"name": name, "age": 40, "source": "julius_sheet", "status": "validated"}
    persona.update(extra)
    return persona


@pytest.fixture
def throttle():
    return CountingThrottle()


def test_social_enrichment_merges_fields_and_marks_status(throttle):
    llm = FakeLLM([social_reply(confidence=0.8, name="Hijacked Name")])
    enricher = PersonaEnricher(llm, throttle=throttle)

    [result] = enricher.enrich_social([_imported("Dana Smith")], CAMPAIGN)

    assert result["name"] == "Dana Smith"
    assert result["status"] == "socially_enriched"
    assert result["social_media_profiles"]["facebook"]["active"] is True
    assert result["enrichment"]["status"] == "enriched"
    assert result["enrichment"]["confidence_score"] == 0.8
    assert result["enrichment"]["sources"] == ["ai_research", "social_analysis", "professional_lookup"]
    assert result["enrichment"]["research_insights"] == ["Responds well to plain-language explanations"]
    assert throttle.waits == 0


def test_one_failure_does_not_stop_the_batch(throttle):
    llm = FakeLLM([social_reply(), RateLimitError("slow down"), social_reply(confidence=0.5)])
    enricher = PersonaEnricher(llm, throttle=throttle)
    personas = [_imported("A"), _imported("B"), _imported("C")]

    results = enricher.enrich_social(personas, CAMPAIGN)

    assert [p["name"] for p in results] == ["A", "B", "C"]
    assert [p["enrichment"]["status"] for p in results] == ["enriched", "failed", "enriched"]
    assert results[1]["status"] == "failed"
    assert results[1]["enrichment"]["error"] == "slow down"
    assert "enriched_at" in results[1]["enrichment"]
    assert throttle.waits == 2


def test_unparseable_reply_uses_fallback(throttle):
    enricher = PersonaEnricher(FakeLLM(["not json"]), throttle=throttle)
    persona = _imported(
        "A",
        communication_style="Direct",
        social_media_profiles={"linkedin": {"usage": "daily"}},
    )
    [result] = enricher.enrich_social([persona])
    assert result["enrichment"]["status"] == "enriched"
    assert result["enrichment"]["confidence_score"] <= 0.3
    assert result["enrichment"]["enriched_fields"] == ["basic_fallback"]
    assert result["enrichment"]["parse_note"]
    # fallback data never replaces what the persona already had
    assert result["communication_style"] == "Direct"
    assert result["social_media_profiles"] == {"linkedin": {"usage": "daily"}}
    assert result["communication_preferences"]["formality_level"] == "professional"


def test_structured_communication_style_keeps_the_text_field(throttle):
    reply = social_reply(communication_style={"preferred_channels": ["text"], "formality_level": "casual"})
    enricher = PersonaEnricher(FakeLLM([reply]), throttle=throttle)
    [result] = enricher.enrich_social([_imported("A", communication_style="Direct")])
    assert result["communication_style"] == "Direct"
    assert result["communication_preferences"] == {"preferred_channels": ["text"], "formality_level": "casual"}
    assert "parse_note" not in result["enrichment"]


def test_progress_callback_sees_every_step(throttle):
    seen = []
    llm = FakeLLM([social_reply(), APIError("down")])
    PersonaEnricher(llm, throttle=throttle).enrich_social(
        [_imported("A"), _imported("B")], progress_callback=seen.append,
    )

    assert [(p.current, p.total, p.persona_name, p.status) for p in seen] == [
        (1, 2, "A", "enriching"),
        (1, 2, "A", "completed"),
        (2, 2, "B", "enriching"),
        (2, 2, "B", "failed"),
    ]
    assert seen[-1].error == "down"


def test_raising_progress_callback_is_ignored(throttle):
    def callback(progress):
        raise RuntimeError("ui went away")

    results = PersonaEnricher(FakeLLM([social_reply()]), throttle=throttle).enrich_social(
        [_imported("A")], progress_callback=callback,
    )
    assert results[0]["status"] == "socially_enriched"


def test_empty_batch(throttle):
    llm = FakeLLM()
    assert PersonaEnricher(llm, throttle=throttle).enrich_social([]) == []
    assert llm.calls == []


def test_legal_enrichment_adds_insights_and_metadata(throttle):
    context = build_source_context({"documents": [{"filename": "complaint.pdf", "summary": "text"}]}, RESEARCH_BUNDLE)
    llm = FakeLLM([social_reply(confidence=0.8), legal_reply(delta=0.15)])
    enricher = PersonaEnricher(llm, throttle=throttle)

    stage_a = enricher.enrich_social([_imported("Dana")], CAMPAIGN)
    result = enricher.enrich_legal(stage_a, CAMPAIGN, context)

    [persona] = result["personas"]
    assert persona["status"] == "legally_enriched"
    assert persona["legal_motivations"] == ["Recover losses", "Hold the company accountable"]
    assert persona["document_insights"] == ["Complaint shows most victims learned of the breach by mail"]
    assert persona["legal_profile"] == {"likely_legal_experience": "none"}
    assert persona["social_media_profiles"]["facebook"]["frequency"] == "daily"
    assert persona["enrichment_metadata"]["enriched_by"] == "persona_agent"
    assert persona["enrichment_metadata"]["confidence_improvement"] == 0.15
    assert persona["enrichment_metadata"]["source_data_points"] == 4
    assert persona["enrichment_metadata"]["original_source"] == "julius_sheet"
    assert result["source_data_count"] == 4
    assert result["confidence"] == 0.8
    assert result["has_media_insights"] is True
    assert llm.calls[1]["temperature"] == 0.2


def test_stage_a_failure_stays_failed_through_stage_b(throttle):
    llm = FakeLLM([APIError("down"), legal_reply()])
    enricher = PersonaEnricher(llm, throttle=throttle)

    stage_a = enricher.enrich_social([_imported("Dana")])
    result = enricher.enrich_legal(stage_a, None, build_source_context(None, RESEARCH_BUNDLE))

    persona = result["personas"][0]
    assert persona["status"] == "failed"
    assert persona["enrichment"]["status"] == "failed"
    assert persona["legal_barriers"] == ["Distrust of lawyers"]
    assert result["confidence"] == 0.0
    assert result["has_media_insights"] is False


def test_legal_failure_records_error(throttle):
    result = PersonaEnricher(FakeLLM([APIError("down")]), throttle=throttle).enrich_legal(
        [_imported("A", source=None)], CAMPAIGN, build_source_context(),
    )
    persona = result["personas"][0]
    assert persona["status"] == "failed"
    assert persona["enrichment_metadata"]["enrichment_error"] == "down"
    assert persona["enrichment_metadata"]["original_source"] == "julius_sheet"


def test_merge_fields_protects_identity_and_merges_one_level():
    persona = {"name": "A", "status": "validated", "profile": {"a": 1, "b": 2}}
    merged = merge_fields(persona, {"name": "B", "status": "x", "profile": {"b": 3}, "new": True})
    assert merged == {"name": "A", "status": "validated", "profile": {"a": 1, "b": 3}, "new": True}
    assert persona["profile"] == {"a": 1, "b": 2}


def test_merge_fields_without_overwrite_fills_gaps_only():
    persona = {"name": "A", "bio": "Nurse", "interests": [], "profile": {"a": 1}}
    merged = merge_fields(persona, {"bio": "x", "interests": ["chess"], "profile": {"a": 2}, "new": 1}, overwrite=False)
    assert merged == {"name": "A", "bio": "Nurse", "interests": ["chess"], "profile": {"a": 1}, "new": 1}


def test_persona_confidence_prefers_generation_score():
    assert persona_confidence({"confidence_score": 0.9, "enrichment": {"confidence_score": 0.4}}) == 0.9
    assert persona_confidence({"enrichment": {"confidence_score": 0.4}}) == 0.4
    assert persona_confidence({"confidence_score": "bad"}) == 0.0
