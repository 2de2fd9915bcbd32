"""Data models for transcript parsing, voice casting and generation payloads."""

from dataclasses import dataclass, field
from enum import Enum

from listening_producer.constants import DEFAULT_DIFFICULTY


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    NEUTRAL = "Neutral"


@dataclass(frozen=True)
class Segment:
    speaker: str
    text: str


@dataclass(frozen=True)
class DialogueAnalysis:
    is_dialogue: bool
    speakers: tuple[str, ...]
    segments: tuple[Segment, ...]


@dataclass(frozen=True)
class ParsedTranscript:
    """Result of stripping the TITLE / VOICE_ASSIGNMENTS / DIALOGUE envelope."""

    title: str | None
    voice_assignments: dict[str, str]
    dialogue_text: str
    has_envelope: bool


@dataclass(frozen=True)
class Voice:
    name: str
    gender: Gender
    style: str = ""


@dataclass(frozen=True)
class RawResponse:
    """Untrusted generation output. Only payload.validate_payload may read it."""

    text: str
    source: str = "llm"        # "llm" or "paste"


@dataclass(frozen=True)
class Question:
    question_text: str
    options: tuple[str, ...]
    correct_answer: str
    explanation: str = ""
    explanation_arabic: str = ""

    def to_dict(self) -> dict:
        data = {
            "questionText": self.question_text,
            "options": list(self.options),
            "correctAnswer": self.correct_answer,
        }
        if self.explanation:
            data["explanation"] = self.explanation
        if self.explanation_arabic:
            data["explanationArabic"] = self.explanation_arabic
        return data


@dataclass(frozen=True)
class LexisItem:
    term: str
    definition: str = ""
    details: dict = field(default_factory=dict)   # definitionArabic, example, partOfSpeech, ...

    def to_dict(self) -> dict:
        data = dict(self.details)
        data["term"] = self.term
        data["definition"] = self.definition
        return data


@dataclass(frozen=True)
class GenerationPayload:
    title: str
    transcript: str
    questions: tuple[Question, ...]
    voice_assignments: dict[str, str] = field(default_factory=dict)
    lexis: tuple[LexisItem, ...] = ()
    difficulty: str = DEFAULT_DIFFICULTY
    extras: dict = field(default_factory=dict)    # preview, classroomActivity, transferQuestion

    def to_dict(self) -> dict:
        """Serialize back to the wire shape accepted by validate_payload()."""
        data = {
            "title": self.title,
            "transcript": self.transcript,
            "difficulty": self.difficulty,
            "voiceAssignments": dict(self.voice_assignments),
            "questions": [q.to_dict() for q in self.questions],
            "lexis": [item.to_dict() for item in self.lexis],
        }
        data.update(self.extras)
        return data


@dataclass
class GenerationRequest:
    """Operator selections for one generation. Survives failed runs."""

    topic: str
    difficulty: str = DEFAULT_DIFFICULTY
    mode: str = "listening"         # "listening" or "reading"
    speaker_count: int = 2
    target_minutes: int = 5
