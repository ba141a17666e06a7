import pytest

from app.schemas.personas import ChatRequest, GenerateRequest


@pytest.mark.parametrize("raw, expected", [(3, 3), ("7", 7), (0, 5), (-2, 5), ("many", 5), (None, 5), (50, 20)])
def test_persona_count_is_coerced(raw, expected):
    request = GenerateRequest(matter="m", keywords="k", target_description="t", persona_count=raw)
    assert request.persona_count == expected


def test_blank_fields_count_as_missing():
    request = GenerateRequest(matter="  ", keywords="k", julius_personas_sheet_url="")
    assert request.missing_fields == ["matter", "target_description"]
    assert not request.enrichment_mode


@pytest.mark.parametrize("raw, expected", [("true", True), ("Yes", True), ("0", False), ("", False), (True, True)])
def test_update_flag(raw, expected):
    assert GenerateRequest(update_source_sheet=raw).update_source_sheet is expected


def test_unknown_fields_are_ignored():
    request = GenerateRequest.model_validate({"matter": "m", "uploaded_by": "someone"})
    assert not hasattr(request, "uploaded_by")


def test_chat_request_accepts_text_or_object_attributes():
    assert ChatRequest(message="hi", persona_attributes="a nurse").persona_attributes == "a nurse"
    assert ChatRequest(message="hi", persona_attributes={"name": "Sam"}).persona_attributes == {"name": "Sam"}
    assert ChatRequest(message="  ").message is None
