"""Shared fixtures for listening producer tests."""

import io
import json

import pytest
from pydub import AudioSegment

from listening_producer.errors import PersistenceError
from listening_producer.models import RawResponse


def make_wav(value: int = 0, frames: int = 2400, frame_rate: int = 24000) -> bytes:
    """Mono 16-bit WAV whose every sample equals value."""
    data = int(value).to_bytes(2, "little", signed=True) * frames
    audio = AudioSegment(data=data, sample_width=2, frame_rate=frame_rate, channels=1)
    buf = io.BytesIO()
    audio.export(buf, format="wav")
    return buf.getvalue()


class FakeSynth:
    """Stands in for a synthesis backend; errors are raised in order, then audio is returned."""

    def __init__(self, name, label, audio=None, errors=None):
        self.name = name
        self.label = label
        self.audio = audio if audio is not None else make_wav(100)
        self.errors = list(errors or [])
        self.calls = []

    def synthesize(self, transcript, voices):
        self.calls.append((transcript, dict(voices)))
        if self.errors:
            raise self.errors.pop(0)
        return self.audio


class FakeStore:
    def __init__(self, fail_tests=0, fail_entries=0):
        self.entries = []
        self.tests = []
        self.fail_tests = fail_tests
        self.fail_entries = fail_entries

    def create_audio_entry(self, **kwargs):
        if self.fail_entries:
            self.fail_entries -= 1
            raise PersistenceError("Failed to save audio entry: HTTP 500")
        self.entries.append(kwargs)
        return f"audio-{len(self.entries)}"

    def create_test(self, **kwargs):
        if self.fail_tests:
            self.fail_tests -= 1
            raise PersistenceError("Failed to save test: HTTP 500")
        self.tests.append(kwargs)
        return f"test-{len(self.tests)}"


class FakeGenerator:
    def __init__(self, raw=None, error=None):
        self.raw = raw
        self.error = error
        self.requests = []

    def generate(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.raw


@pytest.fixture
def payload_dict():
    """A valid two-speaker listening payload."""
    return {
        "title": "Booking a Hotel Room",
        "difficulty": "A2",
        "transcript": "Ava: I'd like a room for two nights.\n\nBen: Certainly. Single or double?\n\nAva: Double, please.",
        "voiceAssignments": {"Ava": "Kore", "Ben": "Puck"},
        "questions": [
            {
                "questionText": "How many nights does Ava want?",
                "options": ["One", "Two", "Three", "Four"],
                "correctAnswer": "Two",
                "explanation": "She asks for two nights.",
            },
            {
                "questionText": "What kind of room does she choose?",
                "options": ["Single", "Double"],
                "correctAnswer": "Double",
            },
        ],
        "lexis": [
            {"term": "double", "definition": "a room for two people", "partOfSpeech": "noun"},
        ],
        "classroomActivity": {"situationSetup": {"en": "You are at a hotel desk."}},
    }


@pytest.fixture
def raw_response(payload_dict):
    return RawResponse(json.dumps(payload_dict), source="paste")


@pytest.fixture
def wav_bytes():
    return make_wav(100)
