"""All magic numbers and configuration constants."""

DEFAULT_SPEAKER = "Narrator"                 # speaker for lines before any "Label: text"
PCM_SAMPLE_RATE = 24000                      # Gemini TTS raw PCM sample rate (Hz)
PCM_CHANNELS = 1                             # Gemini TTS raw PCM is mono
PCM_SAMPLE_WIDTH = 2                         # bytes per sample (16-bit)
SEGMENT_PAUSE_MS = 0                         # silence spliced between per-segment buffers
TTS_RETRY_COUNT = 3                          # max attempts per edge-tts segment call
TTS_RETRY_BASE_DELAY = 1.0                   # seconds, base delay for exponential backoff
EDGE_TTS_CONCURRENCY = 4                     # concurrent per-segment edge-tts calls
HTTP_TIMEOUT_SECONDS = 60                    # timeout for provider and store HTTP calls
GEMINI_TTS_MODEL = "gemini-2.5-flash-preview-tts"
GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models"
OPENAI_API_URL = "https://api.openai.com/v1"
CONTENT_MODEL = "gpt-5-mini"                 # content-generation model id
DEFAULT_GEMINI_VOICE = "Charon"              # unresolved speakers, Backend A
DEFAULT_EDGE_VOICE = "en-US-AriaNeural"      # unresolved speakers, Backend B
DEFAULT_DIFFICULTY = "B1"
CEFR_LEVELS = ("A1", "A2", "B1", "B2", "C1")
QUOTA_STATUS_CODES = {429, 503}
QUOTA_MARKERS = ("quota", "rate", "limit", "resource_exhausted")
ENGINE_GEMINI = "GEMINI"
ENGINE_EDGE = "EDGE_TTS"
ENGINE_NONE = "BROWSER"                      # transcript-only entries play via browser TTS
TEST_TYPE_LISTENING = "listening-comprehension"
TEST_TYPE_READING = "reading-comprehension"
OUTPUT_DIR = "output"
SESSION_CACHE_FILE = ".test_cache.json"
VERSION = "0.1.0"
