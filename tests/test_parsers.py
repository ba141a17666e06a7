import json

import pytest

from persona_engine.parsers import (
    FALLBACK_CONFIDENCE,
    extract_json,
    normalize_generation_confidence,
    parse_legal_enrichment,
    parse_persona_array,
    parse_quick_persona,
    parse_research_payload,
    parse_social_enrichment,
)


def test_extract_json_strips_fences_and_prose():
    text = 'Here you go:\n```json\n{"a": 1, "b": {"c": [1, 2]}}\n```\nThanks!'
    assert extract_json(text) == {"a": 1, "b": {"c": [1, 2]}}


def test_extract_json_falls_back_to_balanced_span():
    # greedy span covers both objects and does not decode
    text = 'first {"a": 1} then {"b": 2}'
    assert extract_json(text) == {"a": 1}


def test_extract_json_raises_without_json():
    with pytest.raises(ValueError):
        extract_json("no json here")
    with pytest.raises(ValueError):
        extract_json("")


@pytest.mark.parametrize("raw, expected", [(1.4, 1.0), (-0.2, 0.0), (0.85, 0.85), ("0.5", 0.5)])
def test_social_confidence_is_clamped(raw, expected):
    text = json.dumps({"enrichedFields": {"x": 1}, "confidence": raw})
    result = parse_social_enrichment(text)
    assert result.ok
    assert result.value.confidence == expected


def test_social_missing_required_keys_falls_back():
    result = parse_social_enrichment(json.dumps({"enrichedFields": {"x": 1}}))
    assert not result.ok
    assert result.value.confidence == FALLBACK_CONFIDENCE
    assert result.value.insights == ["Enrichment failed, using basic fallback data"]
    assert result.value.fields_enriched == ["basic_fallback"]


def test_social_garbage_falls_back_with_low_confidence():
    result = parse_social_enrichment("I cannot help with that.")
    assert not result.ok
    assert result.value.confidence <= 0.3
    assert "social_media_profiles" in result.value.enriched_fields


def test_social_optional_lists_default_empty():
    result = parse_social_enrichment(json.dumps({"enrichedFields": {}, "confidence": 0.6, "extra": "dropped"}))
    assert result.ok
    assert result.value.fields_enriched == []
    assert result.value.insights == []
    assert not hasattr(result.value, "extra")


def test_legal_reply_parses_and_clamps_delta():
    text = json.dumps({"additions": {"legal_barriers": ["cost"]}, "confidence_delta": 3})
    result = parse_legal_enrichment(text)
    assert result.ok
    assert result.value.additions == {"legal_barriers": ["cost"]}
    assert result.value.insights == []
    assert result.value.legal_profile == {}
    assert result.value.confidence_delta == 1.0


def test_legal_fallback():
    result = parse_legal_enrichment("not json")
    assert not result.ok
    assert result.value.confidence_delta == 0.0
    assert result.value.additions["legal_motivations"] == ["seeking legal resolution"]
    assert result.value.legal_profile == {"likely_legal_experience": "limited"}


def test_persona_array_normalizes_confidence_and_drops_non_objects():
    text = json.dumps([{"name": "A", "confidence_score": 85}, "junk", {"name": "B", "confidence_score": 140}])
    result = parse_persona_array(text)
    assert result.ok
    assert [p["name"] for p in result.value] == ["A", "B"]
    assert result.value[0]["confidence_score"] == 0.85
    assert result.value[1]["confidence_score"] == 1.0
    assert "Dropped 1" in result.note


def test_persona_array_empty_and_invalid():
    assert parse_persona_array("[]").value == []
    result = parse_persona_array("no personas today")
    assert not result.ok
    assert result.value == []


@pytest.mark.parametrize("raw, expected", [(70, 0.7), (-5, 0.0), ("n/a", 0.0), (250, 1.0)])
def test_normalize_generation_confidence(raw, expected):
    assert normalize_generation_confidence(raw) == expected


def test_quick_persona_parse_and_fallback():
    ok = parse_quick_persona('{"name": "Sam", "motivations": "get paid"}', "a tenant")
    assert ok.ok
    assert ok.value.name == "Sam"
    assert ok.value.motivations == ["get paid"]

    fallback = parse_quick_persona("oops", "a tenant facing eviction")
    assert not fallback.ok
    assert fallback.value.name == "Alex"
    assert fallback.value.bio == "a tenant facing eviction"


def test_research_payload_tags_and_errors():
    data = parse_research_payload('{"pain_points": []}', "social_insights")
    assert data["_request_type"] == "social_insights"
    assert data["_raw_response"] == '{"pain_points": []}'
    assert "error" not in data

    failed = parse_research_payload("plain prose", "demographics")
    assert failed["error"] == "Could not parse structured response"
    assert failed["_raw_response"] == "plain prose"
    assert failed["_request_type"] == "demographics"
