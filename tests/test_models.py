"""Tests for data models."""

import dataclasses

import pytest

from listening_producer.constants import DEFAULT_DIFFICULTY
from listening_producer.models import (
    GenerationPayload,
    GenerationRequest,
    LexisItem,
    Question,
    RawResponse,
    Segment,
)


def test_segment_is_immutable():
    """Segments cannot be edited after parsing."""
    seg = Segment(speaker="Ava", text="Hi.")
    with pytest.raises(dataclasses.FrozenInstanceError):
        seg.text = "Bye."


def test_question_to_dict_uses_wire_keys():
    """Question serializes with camelCase keys and omits empty explanations."""
    q = Question(question_text="Where?", options=("Here", "There"), correct_answer="Here")
    assert q.to_dict() == {"questionText": "Where?", "options": ["Here", "There"], "correctAnswer": "Here"}


def test_question_to_dict_keeps_explanations():
    q = Question("Where?", ("Here", "There"), "Here", explanation="Said so.", explanation_arabic="قال ذلك")
    data = q.to_dict()
    assert data["explanation"] == "Said so."
    assert data["explanationArabic"] == "قال ذلك"


def test_lexis_details_round_trip():
    """Extra lexis fields survive serialization."""
    item = LexisItem(term="book", definition="reserve", details={"partOfSpeech": "verb"})
    assert item.to_dict() == {"term": "book", "definition": "reserve", "partOfSpeech": "verb"}


def test_payload_defaults():
    """Difficulty defaults to B1; hints, lexis and extras to empty."""
    payload = GenerationPayload(
        title="T", transcript="A: hi", questions=(Question("Q", ("a", "b"), "a"),)
    )
    assert payload.difficulty == DEFAULT_DIFFICULTY
    assert payload.voice_assignments == {}
    assert payload.lexis == ()
    data = payload.to_dict()
    assert data["voiceAssignments"] == {}
    assert data["questions"][0]["correctAnswer"] == "a"


def test_payload_to_dict_merges_extras():
    payload = GenerationPayload(
        title="T", transcript="A: hi", questions=(Question("Q", ("a", "b"), "a"),),
        extras={"transferQuestion": {"question": "Why?"}},
    )
    assert payload.to_dict()["transferQuestion"] == {"question": "Why?"}


def test_raw_response_defaults_to_llm_source():
    assert RawResponse("{}").source == "llm"


def test_generation_request_defaults():
    request = GenerationRequest(topic="Travel")
    assert request.mode == "listening"
    assert request.speaker_count == 2
    assert request.difficulty == DEFAULT_DIFFICULTY
