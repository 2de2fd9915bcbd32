"""Voice catalogs and speaker → voice assignment for both synthesis backends."""

import logging

from listening_producer.constants import DEFAULT_EDGE_VOICE, DEFAULT_GEMINI_VOICE
from listening_producer.gender import guess_gender
from listening_producer.models import Gender, Voice

logger = logging.getLogger(__name__)

# Gemini prebuilt voices (Backend A), female block first
GEMINI_VOICES = (
    Voice("Aoede", Gender.FEMALE, "Breezy"),
    Voice("Kore", Gender.FEMALE, "Firm"),
    Voice("Leda", Gender.FEMALE, "Youthful"),
    Voice("Zephyr", Gender.FEMALE, "Bright"),
    Voice("Autonoe", Gender.FEMALE, "Warm"),
    Voice("Callirhoe", Gender.FEMALE, "Gentle"),
    Voice("Despina", Gender.FEMALE, "Smooth"),
    Voice("Erinome", Gender.FEMALE, "Clear"),
    Voice("Gacrux", Gender.FEMALE, "Mature"),
    Voice("Laomedeia", Gender.FEMALE, "Calm"),
    Voice("Pulcherrima", Gender.FEMALE, "Elegant"),
    Voice("Sulafat", Gender.FEMALE, "Serene"),
    Voice("Vindemiatrix", Gender.FEMALE, "Refined"),
    Voice("Achernar", Gender.FEMALE, "Soft"),
    Voice("Charon", Gender.MALE, "Informative"),
    Voice("Puck", Gender.MALE, "Upbeat"),
    Voice("Fenrir", Gender.MALE, "Excitable"),
    Voice("Orus", Gender.MALE, "Firm"),
    Voice("Achird", Gender.MALE, "Friendly"),
    Voice("Algenib", Gender.MALE, "Gravelly"),
    Voice("Algieba", Gender.MALE, "Smooth"),
    Voice("Alnilam", Gender.MALE, "Firm"),
    Voice("Enceladus", Gender.MALE, "Breathy"),
    Voice("Iapetus", Gender.MALE, "Deep"),
    Voice("Rasalgethi", Gender.MALE, "Lively"),
    Voice("Sadachbia", Gender.MALE, "Clear"),
    Voice("Sadaltager", Gender.MALE, "Knowledgeable"),
    Voice("Schedar", Gender.MALE, "Professional"),
    Voice("Umbriel", Gender.MALE, "Relaxed"),
    Voice("Zubenelgenubi", Gender.MALE, "Casual"),
)

# Hardcoded edge-tts English voices (Backend B, avoids network call at startup)
EDGE_VOICES = (
    Voice("en-US-AriaNeural", Gender.FEMALE),
    Voice("en-US-JennyNeural", Gender.FEMALE),
    Voice("en-GB-SoniaNeural", Gender.FEMALE),
    Voice("en-AU-NatashaNeural", Gender.FEMALE),
    Voice("en-CA-ClaraNeural", Gender.FEMALE),
    Voice("en-IE-EmilyNeural", Gender.FEMALE),
    Voice("en-IN-NeerjaNeural", Gender.FEMALE),
    Voice("en-US-SaraNeural", Gender.FEMALE),
    Voice("en-US-GuyNeural", Gender.MALE),
    Voice("en-US-DavisNeural", Gender.MALE),
    Voice("en-GB-RyanNeural", Gender.MALE),
    Voice("en-GB-ThomasNeural", Gender.MALE),
    Voice("en-AU-WilliamNeural", Gender.MALE),
    Voice("en-CA-LiamNeural", Gender.MALE),
    Voice("en-IN-PrabhatNeural", Gender.MALE),
    Voice("en-US-TonyNeural", Gender.MALE),
)

_OPPOSITE = {
    Gender.MALE: Gender.FEMALE,
    Gender.FEMALE: Gender.MALE,
    Gender.NEUTRAL: Gender.NEUTRAL,
}


def find_voice(name: str, catalog=GEMINI_VOICES) -> Voice | None:
    for voice in catalog:
        if voice.name == name:
            return voice
    return None


def _of_gender(pool, gender: Gender) -> list[Voice]:
    return [v for v in pool if v.gender == gender]


def assign_voices(
    speakers,
    catalog=GEMINI_VOICES,
    default: str = DEFAULT_GEMINI_VOICE,
    genders: dict | None = None,
) -> dict[str, str]:
    """Cast every speaker from a gender-partitioned catalog.

    The first two speakers get the most contrasting pair available. A
    neutral second speaker takes the opposite gender of the first voice.
    Later speakers cycle through the voices not yet used, within their own
    gender when it is known. genders overrides guess_gender() per speaker.
    """
    genders = genders or {}
    mapping = {}
    if not catalog:
        return {speaker: default for speaker in speakers}

    used = set()
    first_gender = Gender.NEUTRAL
    for index, speaker in enumerate(speakers):
        if speaker in mapping:
            continue
        gender = genders.get(speaker) or guess_gender(speaker)
        unused = [v for v in catalog if v.name not in used] or list(catalog)

        if index == 0:
            pool = _of_gender(catalog, gender) or list(catalog)
            voice = pool[0]
            first_gender = voice.gender
        elif index == 1:
            if gender == Gender.NEUTRAL:
                gender = _OPPOSITE[first_gender]
            pool = _of_gender(unused, gender) or unused
            voice = pool[0]
        else:
            pool = _of_gender(unused, gender) or unused
            voice = pool[(index - 2) % len(pool)]

        mapping[speaker] = voice.name
        used.add(voice.name)

    return mapping


def resolve_primary_voices(speakers, hints: dict | None = None) -> dict[str, str]:
    """Build the Backend A (Gemini) map, trusting author hints when present.

    Speakers absent from the hints fall back to DEFAULT_GEMINI_VOICE. A
    single unlabelled speaker with exactly one hint takes that hint.
    """
    speakers = list(speakers)
    if not hints:
        return assign_voices(speakers, GEMINI_VOICES, DEFAULT_GEMINI_VOICE)

    if len(speakers) == 1 and speakers[0] not in hints and len(hints) == 1:
        return {speakers[0]: next(iter(hints.values()))}

    mapping = {}
    for speaker in speakers:
        voice = hints.get(speaker)
        if not voice:
            logger.warning("No voice hint for speaker %r, using %s", speaker, DEFAULT_GEMINI_VOICE)
            voice = DEFAULT_GEMINI_VOICE
        mapping[speaker] = voice
    return mapping


def resolve_secondary_voices(speakers, primary: dict | None = None) -> dict[str, str]:
    """Translate speakers into the edge-tts catalog (Backend B).

    Gender follows the speaker's Backend A voice when it is a known catalog
    voice, otherwise the label heuristic.
    """
    primary = primary or {}
    genders = {}
    for speaker in speakers:
        voice = find_voice(primary.get(speaker, ""), GEMINI_VOICES)
        if voice is not None:
            genders[speaker] = voice.gender
    return assign_voices(list(speakers), EDGE_VOICES, DEFAULT_EDGE_VOICE, genders=genders)
