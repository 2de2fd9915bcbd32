"""Prompt builders for the content-generation service.

Each builder returns (instructions, input) for one Responses API call.
"""

from listening_producer.models import Gender
from listening_producer.voices import GEMINI_VOICES

CEFR_DESCRIPTIONS = {
    "A1": "Beginner - very common vocabulary, simple clear language",
    "A2": "Elementary - everyday vocabulary, straightforward language",
    "B1": "Intermediate - broader vocabulary, opinions and experiences",
    "B2": "Upper-Intermediate - wide vocabulary, complex ideas, natural speech",
    "C1": "Advanced - rich vocabulary, idiomatic and nuanced language",
}

CEFR_PROMPT_GUIDELINES = {
    "A1": ("Use the 500 most common English words. Keep sentences short and easy to follow. "
           "Grammar must still be correct and natural; do not artificially restrict tenses."),
    "A2": ("Use the 1000 most common English words. Sentences are straightforward but complete. "
           "Common phrasal verbs and collocations are welcome."),
    "B1": ("Use moderately varied vocabulary (about 2000 words) and whatever tenses fit. "
           "Include common idioms and connectors such as however, although, despite."),
    "B2": ("Use a wide vocabulary including abstract and academic words, complex sentences "
           "where appropriate, and idiomatic expressions."),
    "C1": ("Use sophisticated vocabulary including low-frequency and field-specific terms. "
           "Speech is fully natural with contractions, colloquialisms and subtle irony."),
}

# minutes → (word count, question range, lexis range)
DURATION_GUIDELINES = {
    5: ("80-120", (3, 4), (3, 5)),
    10: ("180-220", (5, 6), (6, 8)),
    15: ("280-320", (7, 8), (8, 10)),
    20: ("330-380", (8, 10), (10, 12)),
    30: ("420-480", (10, 12), (12, 15)),
}

# Lower levels need more time per item
CEFR_TIME_FACTORS = {"A1": 1.4, "A2": 1.2, "B1": 1.0, "B2": 0.85, "C1": 0.7}

JSON_ONLY = "Return a SINGLE JSON object. No markdown fences, no explanation, only valid JSON."


def duration_guidelines(target_minutes: int, difficulty: str) -> dict:
    """Word count and question/lexis ranges for a target activity length.

    Uses the largest bucket not above target_minutes, scaled by CEFR level.
    """
    buckets = sorted(DURATION_GUIDELINES)
    base = buckets[0]
    for minutes in buckets:
        if minutes <= target_minutes:
            base = minutes
    words, (q_min, q_max), (l_min, l_max) = DURATION_GUIDELINES[base]
    factor = 1 / CEFR_TIME_FACTORS.get(difficulty, 1.0)
    return {
        "word_count": words,
        "questions": f"{max(2, round(q_min * factor))}-{max(3, round(q_max * factor))}",
        "lexis": f"{max(2, round(l_min * factor))}-{max(3, round(l_max * factor))}",
    }


def gemini_voice_reference() -> str:
    """Markdown list of the Gemini voices, grouped by gender."""
    lines = []
    for gender, heading in ((Gender.FEMALE, "FEMALE"), (Gender.MALE, "MALE")):
        lines.append(f"## {heading} voices (use ONLY for {heading.lower()} characters):")
        for voice in GEMINI_VOICES:
            if voice.gender == gender:
                lines.append(f"- {voice.name} ({voice.gender.value}): {voice.style}")
        lines.append("")
    return "\n".join(lines).rstrip()


def _level_block(difficulty: str) -> str:
    return (
        f"## Target Level: {difficulty} - {CEFR_DESCRIPTIONS.get(difficulty, '')}\n\n"
        f"### Language Guidelines for {difficulty}:\n{CEFR_PROMPT_GUIDELINES.get(difficulty, '')}"
    )


def build_dialogue_prompt(difficulty: str, target_minutes: int, topic: str | None = None,
                          speaker_count: int = 2) -> tuple[str, str]:
    guide = duration_guidelines(target_minutes, difficulty)
    kind = "monologue" if speaker_count == 1 else "dialogue"

    if speaker_count == 1:
        voice_rules = "- Assign ONE voice matching the speaker's gender and role."
        sample = '"Sarah: Full monologue text."'
        hints = '"Sarah": "Kore"'
    elif speaker_count >= 3:
        voice_rules = ("- Assign a distinct voice to every speaker, with at least one male and one female.\n"
                       "- Female characters MUST use a FEMALE voice; male characters a MALE voice.")
        sample = '"Sarah: First line.\\n\\nMarcus: Response.\\n\\nJames: Another view."'
        hints = '"Sarah": "Kore", "Marcus": "Puck", "James": "Charon"'
    else:
        voice_rules = ("- ALWAYS assign one FEMALE voice and one MALE voice for contrast.\n"
                       "- Female characters MUST use a FEMALE voice; male characters a MALE voice.")
        sample = '"Sarah: First line.\\n\\nMarcus: Response line."'
        hints = '"Sarah": "Kore", "Marcus": "Puck"'

    instructions = (
        "You are an expert scriptwriter for EFL (English as a Foreign Language) listening exercises. "
        f"You write natural, engaging {kind}s calibrated to the learner's proficiency level."
    )
    topic_line = (f'- Topic: "{topic}". Interpret it creatively with a specific, unique scenario.'
                  if topic else "- Choose an engaging, SPECIFIC topic (not generic small talk).")
    input_text = f"""# Generate a {kind.title()} for an EFL Listening Exercise

{_level_block(difficulty)}

## Length
- Target duration: {target_minutes} minutes of student activity
- Word count: approximately {guide['word_count']} words

## Available TTS Voices (Gemini)
{gemini_voice_reference()}

## Quality
{topic_line}
- Use real character names, never "Speaker1" or "Narrator".
- No stage directions, sound effects or meta-commentary.

## Voice Selection
{voice_rules}

## Output Format
{JSON_ONLY}

{{
  "title": "Descriptive title",
  "difficulty": "{difficulty}",
  "transcript": {sample},
  "voiceAssignments": {{{hints}}}
}}

Use "Speaker: text" lines with a blank line between turns."""
    return instructions, input_text


def build_passage_prompt(difficulty: str, target_minutes: int, topic: str | None = None,
                         genre: str = "article") -> tuple[str, str]:
    guide = duration_guidelines(target_minutes, difficulty)
    instructions = (
        "You are an expert writer of EFL reading passages. You write engaging, well-structured "
        "texts calibrated to the learner's proficiency level."
    )
    topic_line = f'- Topic: "{topic}"' if topic else "- Choose an engaging, SPECIFIC topic."
    input_text = f"""# Generate a Reading Passage ({genre})

{_level_block(difficulty)}

## Length
- Word count: approximately {guide['word_count']} words

## Quality
{topic_line}
- Plain prose in paragraphs separated by blank lines. No headings or speaker labels.

## Output Format
{JSON_ONLY}

{{
  "title": "Descriptive title",
  "difficulty": "{difficulty}",
  "passage": "First paragraph.\\n\\nSecond paragraph."
}}"""
    return instructions, input_text


def build_test_prompt(title: str, transcript: str, difficulty: str, target_minutes: int,
                      mode: str = "listening") -> tuple[str, str]:
    guide = duration_guidelines(target_minutes, difficulty)
    source = "passage" if mode == "reading" else "dialogue"
    instructions = (
        "You are an expert EFL test designer. Given a text, you write comprehension questions "
        "and vocabulary exercises that test genuine understanding, not surface recall."
    )
    input_text = f"""# Generate Test Content for an EFL {"Reading" if mode == "reading" else "Listening"} Exercise

{_level_block(difficulty)}

## The {source.title()}

Title: "{title}"

{transcript}

## Questions
- Write {guide['questions']} multiple-choice questions about the {source} above.
- Each question has exactly 4 options.
- correctAnswer must match one option exactly, character for character.
- Cover main ideas, details, speaker attitudes and inferences.
- Give an explanation in English ("explanation") and Arabic ("explanationArabic").

## Vocabulary
- Select {guide['lexis']} key items FROM the {source}.
- Each item has term, definition, definitionArabic, hintArabic, example and partOfSpeech.

## Output Format
{JSON_ONLY}

{{
  "questions": [
    {{"questionText": "...", "options": ["A", "B", "C", "D"], "correctAnswer": "A",
      "explanation": "...", "explanationArabic": "..."}}
  ],
  "lexis": [
    {{"term": "...", "definition": "...", "definitionArabic": "...", "hintArabic": "...",
      "example": "...", "partOfSpeech": "noun"}}
  ]
}}"""
    return instructions, input_text
