"""Client for the content-generation service (OpenAI Responses API over REST)."""

import json
import logging

import requests

from listening_producer.constants import CONTENT_MODEL, HTTP_TIMEOUT_SECONDS, OPENAI_API_URL
from listening_producer.errors import ContentGenerationError
from listening_producer.models import GenerationRequest, RawResponse
from listening_producer.payload import extract_json_object
from listening_producer.prompts import build_dialogue_prompt, build_passage_prompt, build_test_prompt

logger = logging.getLogger(__name__)

# Keys taken from the test-content call when merging the two responses
TEST_CONTENT_KEYS = ("questions", "lexis", "preview", "classroomActivity", "transferQuestion")


class ContentGenerator:
    """Two calls per request: the dialogue or passage, then questions and lexis.

    The result is a RawResponse; nothing here validates the payload.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = CONTENT_MODEL,
        api_url: str = OPENAI_API_URL,
        timeout: int = HTTP_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key
        self.model = model
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def complete(self, instructions: str, input_text: str) -> str:
        """One Responses API call. Returns the output text."""
        if not self.is_configured:
            raise ContentGenerationError("OpenAI API key not configured")

        try:
            response = requests.post(
                f"{self.api_url}/responses",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"model": self.model, "instructions": instructions, "input": input_text},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            raise ContentGenerationError(f"Content generation failed: HTTP {status}") from exc
        except (requests.exceptions.RequestException, ValueError) as exc:
            raise ContentGenerationError(f"Content generation failed: {exc}") from exc

        text = self._output_text(data)
        if not text:
            raise ContentGenerationError("Content generation returned no text")
        return text

    @staticmethod
    def _output_text(data) -> str:
        if not isinstance(data, dict):
            return ""
        if data.get("output_text"):
            return data["output_text"]
        chunks = []
        for item in data.get("output") or []:
            if item.get("type") != "message":
                continue
            for part in item.get("content") or []:
                if part.get("text"):
                    chunks.append(part["text"])
        return "".join(chunks)

    def generate(self, request: GenerationRequest) -> RawResponse:
        """Produce merged generation output for a request."""
        if request.mode == "reading":
            prompt = build_passage_prompt(request.difficulty, request.target_minutes, request.topic)
        else:
            prompt = build_dialogue_prompt(
                request.difficulty, request.target_minutes, request.topic, request.speaker_count
            )

        logger.info("Generating %s content (%s)", request.mode, request.difficulty)
        first = extract_json_object(self.complete(*prompt))
        merged = dict(first)
        merged.setdefault("difficulty", request.difficulty)

        title = first.get("title")
        transcript = first.get("transcript") or first.get("passage")
        # Without a text there is nothing to ask questions about; validation reports it
        if isinstance(title, str) and isinstance(transcript, str) and transcript.strip():
            logger.info("Generating test content for %r", title)
            second = extract_json_object(self.complete(*build_test_prompt(
                title, transcript, merged["difficulty"], request.target_minutes, request.mode,
            )))
            merged.update({key: second[key] for key in TEST_CONTENT_KEYS if key in second})

        return RawResponse(json.dumps(merged), source="llm")
