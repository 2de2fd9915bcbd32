"""Speech synthesis backends: Gemini multi-speaker (A) and edge-tts per utterance (B)."""

import asyncio
import base64
import binascii
import logging
import re

import edge_tts
import requests
from pydub.exceptions import CouldntDecodeError

from listening_producer.assembly import concatenate_audio, pcm_to_wav
from listening_producer.constants import (
    DEFAULT_EDGE_VOICE,
    DEFAULT_GEMINI_VOICE,
    EDGE_TTS_CONCURRENCY,
    ENGINE_EDGE,
    ENGINE_GEMINI,
    GEMINI_API_URL,
    GEMINI_TTS_MODEL,
    HTTP_TIMEOUT_SECONDS,
    QUOTA_MARKERS,
    QUOTA_STATUS_CODES,
    TTS_RETRY_BASE_DELAY,
    TTS_RETRY_COUNT,
)
from listening_producer.errors import FAILURE_KIND_GENERIC, FAILURE_KIND_QUOTA, SynthesisError
from listening_producer.parser import parse_dialogue, strip_speaker_labels

logger = logging.getLogger(__name__)

_QUOTA_RE = re.compile(r"\b(" + "|".join(QUOTA_MARKERS) + r")|\b(429|503)\b")


def classify_failure(message: str, status: int | None = None) -> str:
    """Label a provider failure as quota-like or generic, for messaging only."""
    if status in QUOTA_STATUS_CODES:
        return FAILURE_KIND_QUOTA
    if _QUOTA_RE.search(str(message or "").lower()):
        return FAILURE_KIND_QUOTA
    return FAILURE_KIND_GENERIC


def _error_detail(response) -> str:
    """Best-effort error message from a provider error body."""
    if response is None:
        return ""
    try:
        body = response.json()
    except ValueError:
        return ""
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or error.get("status") or "")
    return str(error or "")


class GeminiSynthesizer:
    """Backend A: whole transcript plus speaker table in one generateContent call."""

    name = ENGINE_GEMINI
    label = "Gemini"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = GEMINI_TTS_MODEL,
        api_url: str = GEMINI_API_URL,
        timeout: int = HTTP_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key
        self.model = model
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def build_speech_config(self, voices: dict[str, str]) -> dict:
        """Multi-speaker config for two or more speakers, single voice otherwise."""
        entries = list(voices.items())
        if len(entries) >= 2:
            return {
                "multiSpeakerVoiceConfig": {
                    "speakerVoiceConfigs": [
                        {
                            "speaker": speaker,
                            "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voice}},
                        }
                        for speaker, voice in entries
                    ],
                },
            }
        voice = entries[0][1] if entries else DEFAULT_GEMINI_VOICE
        return {"voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voice}}}

    def synthesize(self, transcript: str, voices: dict[str, str]) -> bytes:
        """Return a playable WAV for the transcript. Raises SynthesisError."""
        if not self.is_configured:
            raise SynthesisError("Gemini API key not configured", backend=self.name)
        # A single voice reads the words only; labels would be spoken aloud
        text = transcript if len(voices) >= 2 else strip_speaker_labels(transcript)
        if not text.strip():
            raise SynthesisError("Transcript is empty", backend=self.name)

        url = f"{self.api_url}/{self.model}:generateContent"
        payload = {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": self.build_speech_config(voices),
            },
        }

        logger.info("Requesting Gemini TTS (%d speaker(s), %d chars)", len(voices), len(text))
        try:
            response = requests.post(
                url,
                params={"key": self.api_key},
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            detail = _error_detail(exc.response) or str(exc)
            raise SynthesisError(
                f"Gemini TTS HTTP {status}: {detail}",
                kind=classify_failure(detail, status),
                backend=self.name,
            ) from exc
        except (requests.exceptions.RequestException, ValueError) as exc:
            raise SynthesisError(
                f"Gemini TTS request failed: {exc}",
                kind=classify_failure(str(exc)),
                backend=self.name,
            ) from exc

        encoded = self._inline_audio(data)
        if not encoded:
            raise SynthesisError("No audio data returned from Gemini", backend=self.name)
        try:
            pcm = base64.b64decode(encoded)
        except (binascii.Error, ValueError) as exc:
            raise SynthesisError(f"Gemini returned undecodable audio: {exc}", backend=self.name) from exc
        if not pcm:
            raise SynthesisError("No audio data returned from Gemini", backend=self.name)

        return pcm_to_wav(pcm)

    @staticmethod
    def _inline_audio(data) -> str:
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            return ""
        for part in parts or []:
            inline = part.get("inlineData") or part.get("inline_data") or {}
            if inline.get("data"):
                return inline["data"]
        return ""


class EdgeSynthesizer:
    """Backend B: one edge-tts call per segment, spliced back in segment order."""

    name = ENGINE_EDGE
    label = "edge-tts"

    def __init__(
        self,
        concurrency: int = EDGE_TTS_CONCURRENCY,
        segment_format: str = "mp3",
        retries: int = TTS_RETRY_COUNT,
        base_delay: float = TTS_RETRY_BASE_DELAY,
    ):
        self.concurrency = max(1, concurrency)
        self.segment_format = segment_format
        self.retries = max(1, retries)
        self.base_delay = base_delay

    def synthesize(self, transcript: str, voices: dict[str, str]) -> bytes:
        """Synthesize every segment, then concatenate. Raises SynthesisError.

        Any failed segment aborts the attempt; partial audio is never returned.
        """
        analysis = parse_dialogue(transcript)
        if not analysis.segments:
            raise SynthesisError("Transcript has no segments to synthesize", backend=self.name)

        jobs = [
            (seg.text, voices.get(seg.speaker) or DEFAULT_EDGE_VOICE)
            for seg in analysis.segments
        ]
        logger.info("Synthesizing %d segment(s) with edge-tts", len(jobs))
        buffers = asyncio.run(self._synthesize_all(jobs))

        try:
            return concatenate_audio(buffers, fmt=self.segment_format)
        except (CouldntDecodeError, ValueError, OSError) as exc:
            raise SynthesisError(f"Could not assemble segment audio: {exc}", backend=self.name) from exc

    async def _synthesize_all(self, jobs: list[tuple[str, str]]) -> list[bytes]:
        """Run segment calls concurrently; results come back in job order."""
        semaphore = asyncio.Semaphore(self.concurrency)
        total = len(jobs)

        async def run(index: int, text: str, voice: str) -> bytes:
            async with semaphore:
                return await self._synthesize_one(index, total, text, voice)

        # gather() preserves argument order regardless of completion order
        return list(await asyncio.gather(*(run(i, text, voice) for i, (text, voice) in enumerate(jobs))))

    async def _synthesize_one(self, index: int, total: int, text: str, voice: str) -> bytes:
        """Single segment with retry; empty audio counts as a failure."""
        last_error = None
        for attempt in range(self.retries):
            try:
                communicate = edge_tts.Communicate(text, voice)
                audio = bytearray()
                async for chunk in communicate.stream():
                    if chunk.get("type") == "audio":
                        audio.extend(chunk["data"])
                if audio:
                    logger.debug("Segment %d/%d done (%s)", index + 1, total, voice)
                    return bytes(audio)
                last_error = SynthesisError(f"edge-tts returned no audio for segment {index + 1}")
            except Exception as exc:
                last_error = exc

            if attempt < self.retries - 1:
                delay = self.base_delay * (2 ** attempt)
                logger.warning(
                    "Segment %d/%d failed (%s), retrying in %.1fs",
                    index + 1, total, last_error, delay,
                )
                await asyncio.sleep(delay)

        raise SynthesisError(
            f"edge-tts failed on segment {index + 1}/{total}: {last_error}",
            kind=classify_failure(str(last_error)),
            backend=self.name,
        ) from last_error
