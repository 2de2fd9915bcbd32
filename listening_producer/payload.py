"""The validation boundary between untrusted generation output and GenerationPayload."""

import json
import re

from listening_producer.constants import DEFAULT_DIFFICULTY
from listening_producer.errors import PayloadValidationError, ResponseParseError
from listening_producer.models import GenerationPayload, LexisItem, Question, RawResponse

# Keys carried through to the test record without validation
PASSTHROUGH_KEYS = ("preview", "classroomActivity", "transferQuestion")

_FENCE_RE = re.compile(r"^```(?:json)?[ \t]*\n?(.*?)\n?```\s*$", re.DOTALL | re.IGNORECASE)


def extract_json_object(text: str) -> dict:
    """Return the first top-level JSON object in text.

    Surrounding prose and markdown code fences are tolerated.
    """
    cleaned = str(text or "").strip()
    fenced = _FENCE_RE.match(cleaned)
    if fenced:
        cleaned = fenced.group(1).strip()

    start = cleaned.find("{")
    if start == -1:
        raise ResponseParseError("No JSON object found in response")

    # Prose may carry stray braces ("{topic}"); try each opening brace in turn
    decoder = json.JSONDecoder()
    last_error = None
    while start != -1:
        try:
            obj, _ = decoder.raw_decode(cleaned[start:])
        except json.JSONDecodeError as exc:
            last_error = exc
        else:
            if isinstance(obj, dict):
                return obj
        start = cleaned.find("{", start + 1)
    raise ResponseParseError(
        f"Failed to parse JSON: {last_error.msg} (line {last_error.lineno})"
    ) from last_error


def _non_empty_str(value) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _validate_question(index: int, raw) -> Question:
    label = f"Question {index}"
    if not isinstance(raw, dict):
        raise PayloadValidationError(f"{label}: must be an object", rule="question", field=f"questions[{index - 1}]")
    if not _non_empty_str(raw.get("questionText")):
        raise PayloadValidationError(
            f'{label}: missing "questionText"', rule="question_text", field=f"questions[{index - 1}].questionText"
        )
    options = raw.get("options")
    if not isinstance(options, list) or len(options) < 2:
        raise PayloadValidationError(
            f"{label}: needs at least 2 options", rule="options", field=f"questions[{index - 1}].options"
        )
    correct = raw.get("correctAnswer")
    if not _non_empty_str(correct):
        raise PayloadValidationError(
            f'{label}: missing "correctAnswer"', rule="correct_answer", field=f"questions[{index - 1}].correctAnswer"
        )
    # Byte-for-byte membership: no trimming or case folding
    if correct not in options:
        raise PayloadValidationError(
            f'{label}: correctAnswer "{correct}" doesn\'t match any option',
            rule="correct_answer_in_options",
            field=f"questions[{index - 1}].correctAnswer",
        )
    return Question(
        question_text=raw["questionText"],
        options=tuple(str(o) for o in options),
        correct_answer=correct,
        explanation=str(raw.get("explanation") or ""),
        explanation_arabic=str(raw.get("explanationArabic") or ""),
    )


def _validate_lexis(raw) -> tuple[LexisItem, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise PayloadValidationError('"lexis" must be an array', rule="lexis", field="lexis")
    items = []
    for index, entry in enumerate(raw, start=1):
        if not isinstance(entry, dict) or not _non_empty_str(entry.get("term")):
            raise PayloadValidationError(
                f'Lexis item {index}: missing "term"', rule="lexis_term", field=f"lexis[{index - 1}].term"
            )
        details = {k: v for k, v in entry.items() if k not in ("term", "definition", "id")}
        items.append(LexisItem(term=entry["term"], definition=str(entry.get("definition") or ""), details=details))
    return tuple(items)


def validate_payload(raw: RawResponse | dict) -> GenerationPayload:
    """Validate generation output as a whole; never repairs partially.

    Accepts a RawResponse (JSON is extracted from its text) or an already
    decoded dict. Raises PayloadValidationError naming the violated rule.
    """
    data = extract_json_object(raw.text) if isinstance(raw, RawResponse) else raw
    if not isinstance(data, dict):
        raise ResponseParseError("Payload is not a JSON object")

    transcript = data.get("transcript")
    # Reading passages may arrive under "passage"
    if not _non_empty_str(transcript) and _non_empty_str(data.get("passage")):
        transcript = data["passage"]

    if not _non_empty_str(data.get("title")):
        raise PayloadValidationError('Missing "title"', rule="title", field="title")
    if not _non_empty_str(transcript):
        raise PayloadValidationError('Missing "transcript"', rule="transcript", field="transcript")

    questions = data.get("questions")
    if not isinstance(questions, list) or not questions:
        raise PayloadValidationError('Missing or empty "questions" array', rule="questions", field="questions")
    validated = tuple(_validate_question(i, q) for i, q in enumerate(questions, start=1))

    voice_assignments = data.get("voiceAssignments") or {}
    if not isinstance(voice_assignments, dict):
        raise PayloadValidationError(
            '"voiceAssignments" must be an object', rule="voice_assignments", field="voiceAssignments"
        )

    extras = {key: data[key] for key in PASSTHROUGH_KEYS if data.get(key)}

    return GenerationPayload(
        title=data["title"].strip(),
        transcript=transcript,
        questions=validated,
        # Empty or null hints fall back to the default voice downstream
        voice_assignments={str(k): str(v).strip() for k, v in voice_assignments.items()
                           if v is not None and str(v).strip()},
        lexis=_validate_lexis(data.get("lexis")),
        difficulty=str(data.get("difficulty") or DEFAULT_DIFFICULTY),
        extras=extras,
    )
