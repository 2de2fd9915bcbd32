"""Strip the optional TITLE / VOICE_ASSIGNMENTS / DIALOGUE envelope from LLM output."""

import re

from listening_producer.models import ParsedTranscript

SECTION_KEYWORDS = {"TITLE", "VOICE_ASSIGNMENTS", "DIALOGUE"}

_TITLE_RE = re.compile(r"^TITLE:[ \t]*(.*)$", re.IGNORECASE | re.MULTILINE)
_VOICES_MARKER_RE = re.compile(r"^VOICE_ASSIGNMENTS:", re.IGNORECASE | re.MULTILINE)
_DIALOGUE_MARKER_RE = re.compile(r"^DIALOGUE:", re.IGNORECASE | re.MULTILINE)
_DIALOGUE_BODY_RE = re.compile(r"^DIALOGUE:[ \t]*\r?\n(.*)\Z", re.IGNORECASE | re.MULTILINE | re.DOTALL)
_ASSIGNMENT_RE = re.compile(r"^([^:]+):\s*(.+)$")
_SECTION_LINE_RE = re.compile(r"^(TITLE|VOICE_ASSIGNMENTS|DIALOGUE):", re.IGNORECASE)


def _extract_voice_assignments(text: str) -> dict[str, str]:
    """Collect "Label: voice" lines between VOICE_ASSIGNMENTS: and DIALOGUE:."""
    assignments = {}
    in_section = False
    for line in text.split("\n"):
        stripped = line.strip()
        if re.match(r"^VOICE_ASSIGNMENTS:", stripped, re.IGNORECASE):
            in_section = True
            continue
        if re.match(r"^DIALOGUE:", stripped, re.IGNORECASE):
            break
        if re.match(r"^TITLE:", stripped, re.IGNORECASE):
            continue
        if not in_section or not stripped:
            continue
        match = _ASSIGNMENT_RE.match(stripped)
        if not match:
            continue
        speaker = match.group(1).strip()
        # Echoed section headers are not speakers
        if speaker.upper() in SECTION_KEYWORDS:
            continue
        assignments[speaker] = match.group(2).strip()
    return assignments


def _extract_title(text: str) -> str | None:
    """Text after TITLE: on its line, or the next non-blank line when that is empty."""
    match = _TITLE_RE.search(text)
    if not match:
        return None
    if match.group(1).strip():
        return match.group(1).strip()
    for line in text[match.end():].split("\n"):
        stripped = line.strip()
        if not stripped:
            continue
        if _SECTION_LINE_RE.match(stripped):
            return None
        return stripped
    return None


def parse_llm_transcript(text: str) -> ParsedTranscript:
    """Split an enveloped transcript into title, voice hints and dialogue body.

    Text without a VOICE_ASSIGNMENTS: or DIALOGUE: marker is returned as-is
    with has_envelope=False. Never raises: a malformed envelope degrades to
    an empty mapping and the original text.
    """
    has_voices = bool(_VOICES_MARKER_RE.search(text))
    has_dialogue = bool(_DIALOGUE_MARKER_RE.search(text))
    if not has_voices and not has_dialogue:
        return ParsedTranscript(title=None, voice_assignments={}, dialogue_text=text, has_envelope=False)

    title = _extract_title(text)

    assignments = _extract_voice_assignments(text) if has_voices else {}

    dialogue_text = text
    if has_dialogue:
        body_match = _DIALOGUE_BODY_RE.search(text)
        if body_match:
            dialogue_text = body_match.group(1).strip()

    return ParsedTranscript(
        title=title,
        voice_assignments=assignments,
        dialogue_text=dialogue_text,
        has_envelope=True,
    )
