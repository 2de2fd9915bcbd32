"""Persistence of audio entries and test records (remote API or local output dir)."""

import base64
import json
import logging
import os
import re
import uuid

import requests

from listening_producer.constants import HTTP_TIMEOUT_SECONDS, OUTPUT_DIR
from listening_producer.errors import PersistenceError

logger = logging.getLogger(__name__)


def slugify(title: str) -> str:
    """Convert a title to an output directory slug.

    "Booking a Hotel Room" → "booking_a_hotel_room"
    """
    slug = re.sub(r"[^a-zA-Z0-9]+", "_", str(title or "")).strip("_").lower()
    return slug or "untitled"


def write_artifact(project_dir: str, filename: str, data: dict) -> str:
    """Write JSON artifact to project_dir/filename.

    Returns path to the written file.
    """
    path = os.path.join(project_dir, filename)
    with open(path, "w") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    return path


def load_artifact(project_dir: str, filename: str) -> dict | None:
    """Read JSON artifact. Returns None if file doesn't exist."""
    path = os.path.join(project_dir, filename)
    if not os.path.exists(path):
        return None
    with open(path) as f:
        return json.load(f)


def build_audio_entry(title, transcript, audio, engine, speaker_voice_map, speakers, is_transcript_only,
                      difficulty=None) -> dict:
    """Wire shape of an audio entry; audio travels base64-encoded or as null."""
    return {
        "title": title,
        "transcript": transcript,
        "audio_data": base64.b64encode(audio).decode("ascii") if audio else None,
        "engine": engine,
        "speaker_mapping": dict(speaker_voice_map or {}),
        "speakers": list(speakers or []),
        "is_transcript_only": bool(is_transcript_only),
        "difficulty": difficulty,
    }


def build_test_record(audio_id, title, test_type, questions, lexis, **extra) -> dict:
    body = {
        "audioId": audio_id,
        "title": title,
        "type": test_type,
        "questions": list(questions),
        "lexis": list(lexis or []),
    }
    body.update({k: v for k, v in extra.items() if v is not None})
    return body


class Store:
    """Save API consumed by the orchestrator's saving stage."""

    def create_audio_entry(self, title, transcript, audio, engine, speaker_voice_map, speakers,
                           is_transcript_only, difficulty=None) -> str:
        raise NotImplementedError

    def create_test(self, audio_id, title, test_type, questions, lexis, **extra) -> str:
        raise NotImplementedError


class HttpStore(Store):
    """POSTs to {base_url}/audio-entries and {base_url}/tests."""

    def __init__(self, base_url: str, timeout: int = HTTP_TIMEOUT_SECONDS):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _post(self, path: str, body: dict, what: str) -> str:
        url = f"{self.base_url}{path}"
        try:
            response = requests.post(url, json=body, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            raise PersistenceError(f"Failed to save {what}: HTTP {status}") from exc
        except (requests.exceptions.RequestException, ValueError) as exc:
            raise PersistenceError(f"Failed to save {what}: {exc}") from exc

        record_id = (data.get("_id") or data.get("id")) if isinstance(data, dict) else None
        if not record_id:
            raise PersistenceError(f"Failed to save {what}: response carried no id")
        logger.info("Saved %s %s", what, record_id)
        return str(record_id)

    def create_audio_entry(self, title, transcript, audio, engine, speaker_voice_map, speakers,
                           is_transcript_only, difficulty=None) -> str:
        body = build_audio_entry(title, transcript, audio, engine, speaker_voice_map, speakers,
                                 is_transcript_only, difficulty)
        return self._post("/audio-entries", body, "audio entry")

    def create_test(self, audio_id, title, test_type, questions, lexis, **extra) -> str:
        body = build_test_record(audio_id, title, test_type, questions, lexis, **extra)
        return self._post("/tests", body, "test")


class LocalStore(Store):
    """Writes output/<slug>_<id>/ with audio_entry.json, audio.wav and test.json."""

    def __init__(self, output_dir: str = OUTPUT_DIR):
        self.output_dir = output_dir
        self._entry_dirs = {}

    def _new_dir(self, title: str, record_id: str) -> str:
        project_dir = os.path.join(self.output_dir, f"{slugify(title)}_{record_id[:8]}")
        try:
            os.makedirs(project_dir, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Could not create {project_dir}: {exc}") from exc
        return project_dir

    def create_audio_entry(self, title, transcript, audio, engine, speaker_voice_map, speakers,
                           is_transcript_only, difficulty=None) -> str:
        entry_id = uuid.uuid4().hex
        project_dir = self._new_dir(title, entry_id)
        body = build_audio_entry(title, transcript, None, engine, speaker_voice_map, speakers,
                                 is_transcript_only, difficulty)
        body["_id"] = entry_id
        try:
            if audio:
                with open(os.path.join(project_dir, "audio.wav"), "wb") as f:
                    f.write(audio)
                body["audio_file"] = "audio.wav"
            write_artifact(project_dir, "audio_entry.json", body)
        except OSError as exc:
            raise PersistenceError(f"Failed to save audio entry: {exc}") from exc
        self._entry_dirs[entry_id] = project_dir
        logger.info("Saved audio entry to %s", project_dir)
        return entry_id

    def create_test(self, audio_id, title, test_type, questions, lexis, **extra) -> str:
        test_id = uuid.uuid4().hex
        project_dir = self._entry_dirs.get(audio_id) or self._new_dir(title, test_id)
        body = build_test_record(audio_id, title, test_type, questions, lexis, **extra)
        body["_id"] = test_id
        try:
            write_artifact(project_dir, "test.json", body)
        except OSError as exc:
            raise PersistenceError(f"Failed to save test: {exc}") from exc
        self._entry_dirs[test_id] = project_dir
        logger.info("Saved test to %s", project_dir)
        return test_id

    def directory_for(self, record_id: str) -> str | None:
        return self._entry_dirs.get(record_id)
