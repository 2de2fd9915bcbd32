"""Generation orchestrator: drives one PipelineRun through the stage machine.

content → validated payload → voices → primary synthesis → (operator choice
on failure) → audio entry + test record.
"""

import logging
import threading
import uuid
from dataclasses import asdict, dataclass, field

from listening_producer.constants import (
    ENGINE_NONE,
    TEST_TYPE_LISTENING,
    TEST_TYPE_READING,
)
from listening_producer.errors import (
    PayloadValidationError,
    PipelineError,
    SynthesisError,
)
from listening_producer.models import (
    DialogueAnalysis,
    GenerationPayload,
    GenerationRequest,
    RawResponse,
)
from listening_producer.parser import parse_dialogue
from listening_producer.payload import validate_payload
from listening_producer.stages import (
    STAGE_CONFIG,
    Action,
    Stage,
    allowed_actions,
    is_active,
    next_stage,
)
from listening_producer.storage import build_test_record
from listening_producer.transcript import parse_llm_transcript
from listening_producer.voices import resolve_primary_voices, resolve_secondary_voices

logger = logging.getLogger(__name__)


@dataclass
class PipelineRun:
    """Transient state of one generation. Only its saved output outlives it."""

    run_id: str
    mode: str = "listening"
    request: GenerationRequest | None = None
    raw: RawResponse | None = None
    stage: Stage = Stage.IDLE
    payload: GenerationPayload | None = None
    analysis: DialogueAnalysis | None = None
    dialogue_text: str = ""
    primary_voices: dict = field(default_factory=dict)
    secondary_voices: dict = field(default_factory=dict)
    voices_used: dict = field(default_factory=dict)
    engine: str | None = None
    audio: bytes | None = None
    reason: str = ""
    failure_kind: str | None = None
    failures: list = field(default_factory=list)
    failed_stage: Stage | None = None
    audio_entry_id: str | None = None
    test_id: str | None = None
    history: list = field(default_factory=list)


def _new_id() -> str:
    return uuid.uuid4().hex


def _with_ids(items) -> list[dict]:
    return [{**item, "id": _new_id()} for item in items]


def _label(backend) -> str:
    return getattr(backend, "label", None) or getattr(backend, "name", "TTS")


class Orchestrator:
    """Owns the single PipelineRun of a session.

    generator must offer generate(GenerationRequest) -> RawResponse; primary
    and secondary offer synthesize(transcript, voices) -> bytes; store offers
    create_audio_entry() and create_test(). on_stage(stage, run) is called
    after every transition.
    """

    def __init__(self, generator, primary, secondary, store, cache=None, on_stage=None):
        self.generator = generator
        self.primary = primary
        self.secondary = secondary
        self.store = store
        self.cache = cache
        self.on_stage = on_stage
        self.run = PipelineRun(run_id=_new_id())
        self._lock = threading.Lock()

    # --- state ---

    @property
    def stage(self) -> Stage:
        return self.run.stage

    @property
    def allowed_actions(self) -> list[Action]:
        return allowed_actions(self.run.stage, self.run.failed_stage)

    @property
    def progress(self) -> int:
        return STAGE_CONFIG[self.run.stage]["progress"]

    def _advance(self, action: Action) -> None:
        previous = self.run.stage
        self.run.stage = next_stage(previous, action, self.run.failed_stage)
        self.run.history.append(self.run.stage)
        logger.info("Run %s: %s -> %s", self.run.run_id[:8], previous.value, self.run.stage.value)
        if self.on_stage is not None:
            self.on_stage(self.run.stage, self.run)

    def _fail(self, exc: Exception) -> None:
        self.run.failed_stage = self.run.stage
        self.run.reason = str(exc)
        if isinstance(exc, PayloadValidationError):
            logger.error("Invalid payload (%s): %s", exc.rule, exc)
        else:
            logger.error("%s failed: %s", self.run.stage.value, exc)
        self._advance(Action.FAIL)

    # --- operator actions ---

    def start(self, request: GenerationRequest | None = None, raw: RawResponse | None = None,
              mode: str | None = None) -> PipelineRun:
        """Begin a run from a request (generate content) or a pasted RawResponse.

        A no-op while another run is active.
        """
        if request is None and raw is None:
            raise ValueError("start() needs a request or a raw response")
        if is_active(self.run.stage) or not self._lock.acquire(blocking=False):
            logger.info("Generation already in progress; ignoring start")
            return self.run
        try:
            mode = mode or (request.mode if request is not None else "listening")
            self.run = PipelineRun(
                run_id=_new_id(), mode=mode, request=request, raw=raw, stage=self.run.stage,
            )
            self._advance(Action.START)
            self._run_from_generating()
        finally:
            self._lock.release()
        return self.run

    def retry(self) -> PipelineRun:
        """Start again with the previous run's selections."""
        run = self.run
        if run.request is None and run.raw is None:
            raise ValueError("Nothing to retry")
        # Generated content is regenerated; pasted content is reused
        raw = None if run.request is not None else run.raw
        return self.start(request=run.request, raw=raw, mode=run.mode)

    def retry_secondary(self) -> PipelineRun:
        with self._lock:
            self._advance(Action.RETRY_SECONDARY)
            self._synthesize(self.secondary, self.run.secondary_voices, fallback=True)
            if self.run.stage == Stage.SAVING:
                self._save()
        return self.run

    def save_without_audio(self) -> PipelineRun:
        with self._lock:
            self._advance(Action.SAVE_WITHOUT_AUDIO)
            self.run.audio = None
            self.run.engine = ENGINE_NONE
            self.run.voices_used = dict(self.run.primary_voices)
            self._save()
        return self.run

    def abandon(self) -> PipelineRun:
        """Discard the waiting run. Its selections stay available to retry()."""
        with self._lock:
            self._advance(Action.ABANDON)
            old = self.run
            self.run = PipelineRun(run_id=_new_id(), mode=old.mode, request=old.request, raw=old.raw,
                                   history=list(old.history))
        return self.run

    def retry_save(self) -> PipelineRun:
        """Retry persistence after a save failure, reusing payload and audio."""
        with self._lock:
            self._advance(Action.RETRY_SAVE)
            self._save()
        return self.run

    # --- stages ---

    def _run_from_generating(self) -> None:
        run = self.run
        try:
            if run.raw is None:
                run.raw = self.generator.generate(run.request)
            run.payload = validate_payload(run.raw)
            if run.mode != "reading":
                self._prepare_voices()
        except PipelineError as exc:
            self._fail(exc)
            return
        except Exception as exc:
            self._fail(exc)
            raise

        if run.mode == "reading":
            self._advance(Action.READING_READY)
            self._save()
            return

        self._advance(Action.LISTENING_READY)
        self._synthesize(self.primary, run.primary_voices)
        if run.stage == Stage.SAVING:
            self._save()

    def _prepare_voices(self) -> None:
        """Parse the payload transcript once; both voice maps derive from it."""
        run = self.run
        parsed = parse_llm_transcript(run.payload.transcript)
        run.dialogue_text = parsed.dialogue_text if parsed.has_envelope else run.payload.transcript
        run.analysis = parse_dialogue(run.dialogue_text)
        hints = run.payload.voice_assignments or parsed.voice_assignments
        run.primary_voices = resolve_primary_voices(run.analysis.speakers, hints)
        run.secondary_voices = resolve_secondary_voices(run.analysis.speakers, run.primary_voices)
        logger.info("Speakers: %s", ", ".join(run.analysis.speakers) or "(none)")

    def _synthesize(self, backend, voices: dict, fallback: bool = False) -> None:
        run = self.run
        try:
            audio = backend.synthesize(run.dialogue_text, voices)
        except SynthesisError as exc:
            run.failures.append(f"{_label(backend)}: {exc}")
            run.failure_kind = exc.kind
            if fallback:
                run.reason = (f"Both {_label(self.primary)} and {_label(backend)} failed. "
                              f"Last error: {exc}")
            elif exc.is_quota:
                run.reason = f"{_label(backend)} quota exceeded"
            else:
                run.reason = str(exc)
            logger.warning("%s synthesis failed (%s): %s", _label(backend), exc.kind, exc)
            self._advance(Action.SYNTHESIS_FAILED)
            return
        except Exception as exc:
            self._fail(exc)
            raise

        run.audio = audio
        run.engine = backend.name
        run.voices_used = dict(voices)
        run.reason = ""
        self._advance(Action.SYNTHESIZED)

    def _test_record(self) -> dict:
        run = self.run
        payload = run.payload
        extra = {"difficulty": payload.difficulty}
        if run.mode == "reading":
            extra["sourceText"] = payload.transcript
        else:
            extra["speakerCount"] = len(run.analysis.speakers)
        for key, value in payload.extras.items():
            if key == "preview" and isinstance(value, list):
                value = [
                    {**activity, "items": _with_ids(activity.get("items") or [])}
                    if isinstance(activity, dict) else activity
                    for activity in value
                ]
            extra[key] = value
        return {
            "audio_id": run.audio_entry_id,
            "title": payload.title,
            "test_type": TEST_TYPE_READING if run.mode == "reading" else TEST_TYPE_LISTENING,
            "questions": _with_ids(q.to_dict() for q in payload.questions),
            "lexis": _with_ids(item.to_dict() for item in payload.lexis),
            **extra,
        }

    def _save(self) -> None:
        """Audio entry (listening only) then the test record referencing it."""
        run = self.run
        payload = run.payload
        try:
            if run.mode != "reading" and run.audio_entry_id is None:
                run.audio_entry_id = self.store.create_audio_entry(
                    title=payload.title,
                    transcript=payload.transcript,
                    audio=run.audio,
                    engine=run.engine,
                    speaker_voice_map=run.voices_used,
                    speakers=list(run.analysis.speakers),
                    is_transcript_only=run.audio is None,
                    difficulty=payload.difficulty,
                )
            record = self._test_record()
            run.test_id = self.store.create_test(**record)
        except PipelineError as exc:
            self._fail(exc)
            return
        except Exception as exc:
            self._fail(exc)
            raise

        if self.cache is not None:
            self.cache.set(run.test_id, {"_id": run.test_id, **build_test_record(**record)})
        run.failed_stage = None
        run.reason = ""
        self._advance(Action.SAVED)

    # --- session restore ---

    def snapshot(self) -> dict:
        """JSON-safe view of the run. Audio bytes are not included."""
        run = self.run
        return {
            "run_id": run.run_id,
            "mode": run.mode,
            "stage": run.stage.value,
            "request": asdict(run.request) if run.request is not None else None,
            "raw": {"text": run.raw.text, "source": run.raw.source} if run.raw is not None else None,
            "payload": run.payload.to_dict() if run.payload is not None else None,
            "primary_voices": dict(run.primary_voices),
            "secondary_voices": dict(run.secondary_voices),
            "reason": run.reason,
            "failure_kind": run.failure_kind,
            "failures": list(run.failures),
            "failed_stage": run.failed_stage.value if run.failed_stage is not None else None,
            "audio_entry_id": run.audio_entry_id,
            "test_id": run.test_id,
        }

    @classmethod
    def resume(cls, snapshot: dict, generator, primary, secondary, store, cache=None,
               on_stage=None) -> "Orchestrator":
        """Rebuild an orchestrator from snapshot() in the nearest safe stage.

        In-flight stages never resume as themselves: generating restarts from
        idle, and audio or saving with a validated payload wait in
        audio_failed for an operator choice. The payload is re-validated.
        """
        orch = cls(generator, primary, secondary, store, cache=cache, on_stage=on_stage)
        run = orch.run
        run.run_id = snapshot.get("run_id") or run.run_id
        run.mode = snapshot.get("mode") or "listening"
        if snapshot.get("request"):
            run.request = GenerationRequest(**snapshot["request"])
        if snapshot.get("raw"):
            run.raw = RawResponse(**snapshot["raw"])

        try:
            stage = Stage(snapshot.get("stage") or Stage.IDLE.value)
        except ValueError:
            stage = Stage.IDLE

        if snapshot.get("payload"):
            try:
                run.payload = validate_payload(snapshot["payload"])
            except PayloadValidationError as exc:
                logger.warning("Discarding invalid snapshot payload: %s", exc)
                run.payload = None
        if run.payload is not None and run.mode != "reading":
            orch._prepare_voices()
            run.primary_voices = snapshot.get("primary_voices") or run.primary_voices
            run.secondary_voices = snapshot.get("secondary_voices") or run.secondary_voices

        run.reason = snapshot.get("reason") or ""
        run.failure_kind = snapshot.get("failure_kind")
        run.failures = list(snapshot.get("failures") or [])
        run.audio_entry_id = snapshot.get("audio_entry_id")
        run.test_id = snapshot.get("test_id")

        failed_saving = stage == Stage.SAVING or (
            stage == Stage.ERROR and snapshot.get("failed_stage") == Stage.SAVING.value
        )
        if stage in (Stage.AUDIO, Stage.SAVING) and run.payload is not None:
            run.reason = f"Interrupted during {stage.value}"

        if stage == Stage.GENERATING or (stage in (Stage.AUDIO, Stage.SAVING, Stage.AUDIO_FAILED)
                                         and run.payload is None):
            stage = Stage.IDLE
        elif failed_saving and run.payload is not None and (run.mode == "reading" or run.audio_entry_id):
            # Nothing left to synthesize; only the save needs repeating
            stage = Stage.ERROR
            run.failed_stage = Stage.SAVING
        elif stage in (Stage.AUDIO, Stage.SAVING, Stage.AUDIO_FAILED) or (failed_saving and run.payload is not None):
            # Audio is never snapshotted, so the operator chooses again
            stage = Stage.AUDIO_FAILED if run.mode != "reading" else Stage.IDLE

        run.stage = stage
        run.history.append(stage)
        logger.info("Resumed run %s in %s", run.run_id[:8], stage.value)
        return orch
