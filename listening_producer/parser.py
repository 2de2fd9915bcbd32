"""Parse dialogue text into speaker-attributed segments."""

import re

from listening_producer.constants import DEFAULT_SPEAKER
from listening_producer.models import DialogueAnalysis, Segment
from listening_producer.transcript import parse_llm_transcript

# "Name: message" matches "John:", "Speaker 1:", "MR. SMITH:".
# The colon must be followed by whitespace so "10:30" is not a label.
_LABEL_RE = re.compile(r"^([A-Za-z0-9\s_.-]+):\s+(.*)")


def parse_dialogue(text: str) -> DialogueAnalysis:
    """Parse a transcript into an ordered DialogueAnalysis.

    Lines of the form "Label: text" open a segment under Label. Any other
    non-blank line is kept as a segment under the current speaker, which is
    "Narrator" until a label is seen. Speakers are listed in first-appearance
    order. Labels are compared exactly after trimming, so "John" and "JOHN"
    are two speakers.
    """
    parsed = parse_llm_transcript(text)
    body = parsed.dialogue_text if parsed.has_envelope else text

    segments = []
    speakers = []
    current_speaker = DEFAULT_SPEAKER
    seen_label = False

    for line in body.split("\n"):
        stripped = line.strip()
        if not stripped:
            continue

        match = _LABEL_RE.match(stripped)
        if match:
            seen_label = True
            current_speaker = match.group(1).strip()
            if current_speaker not in speakers:
                speakers.append(current_speaker)
            content = match.group(2).strip()
            if content:
                segments.append(Segment(speaker=current_speaker, text=content))
            continue

        # Narration before any label registers the default speaker
        if not segments and not seen_label and DEFAULT_SPEAKER not in speakers:
            speakers.append(DEFAULT_SPEAKER)
        segments.append(Segment(speaker=current_speaker, text=stripped))

    is_dialogue = len(speakers) > 1 or (len(speakers) == 1 and speakers[0] != DEFAULT_SPEAKER)
    return DialogueAnalysis(
        is_dialogue=is_dialogue,
        speakers=tuple(speakers),
        segments=tuple(segments),
    )


def strip_speaker_labels(text: str) -> str:
    """Return only the spoken words, one segment per line."""
    return "\n".join(seg.text for seg in parse_dialogue(text).segments)
