"""Tests for the generation orchestrator."""

import json
import threading

import pytest

from conftest import FakeGenerator, FakeStore, FakeSynth, make_wav
from listening_producer.cache import TestCache
from listening_producer.constants import (
    ENGINE_EDGE,
    ENGINE_GEMINI,
    ENGINE_NONE,
    TEST_TYPE_LISTENING,
    TEST_TYPE_READING,
)
from listening_producer.errors import (
    ContentGenerationError,
    InvalidTransitionError,
    SynthesisError,
)
from listening_producer.models import GenerationRequest, RawResponse
from listening_producer.orchestrator import Orchestrator
from listening_producer.stages import Action, Stage

GEMINI_AUDIO = make_wav(10)
EDGE_AUDIO = make_wav(20)


def _quota_error():
    return SynthesisError("Gemini TTS HTTP 429: Resource has been exhausted", kind="quota", backend=ENGINE_GEMINI)


def _edge_error():
    return SynthesisError("edge-tts failed on segment 2/3: timeout", backend=ENGINE_EDGE)


@pytest.fixture
def parts(raw_response):
    return {
        "generator": FakeGenerator(raw=raw_response),
        "primary": FakeSynth(ENGINE_GEMINI, "Gemini", audio=GEMINI_AUDIO),
        "secondary": FakeSynth(ENGINE_EDGE, "edge-tts", audio=EDGE_AUDIO),
        "store": FakeStore(),
        "cache": TestCache(),
    }


@pytest.fixture
def orch(parts):
    return Orchestrator(**parts)


def _request(**kwargs):
    return GenerationRequest(topic="Hotels", difficulty="A2", **kwargs)


# --- Happy paths ---

def test_listening_run_completes(orch, parts):
    """Generate, synthesize with the primary backend, save entry then test."""
    run = orch.start(_request())
    assert run.stage == Stage.DONE
    assert run.history == [Stage.GENERATING, Stage.AUDIO, Stage.SAVING, Stage.DONE]
    assert run.engine == ENGINE_GEMINI
    assert parts["secondary"].calls == []

    entry = parts["store"].entries[0]
    assert entry["audio"] == GEMINI_AUDIO
    assert entry["engine"] == ENGINE_GEMINI
    assert entry["is_transcript_only"] is False
    assert entry["speakers"] == ["Ava", "Ben"]
    assert entry["speaker_voice_map"] == {"Ava": "Kore", "Ben": "Puck"}
    assert entry["difficulty"] == "A2"

    test = parts["store"].tests[0]
    assert test["audio_id"] == run.audio_entry_id == "audio-1"
    assert test["test_type"] == TEST_TYPE_LISTENING
    assert test["speakerCount"] == 2
    assert run.test_id == "test-1"


def test_primary_gets_dialogue_and_hinted_voices(orch, parts):
    orch.start(_request())
    transcript, voices = parts["primary"].calls[0]
    assert transcript.startswith("Ava: I'd like a room")
    assert voices == {"Ava": "Kore", "Ben": "Puck"}


def test_test_record_gets_fresh_ids(orch, parts):
    orch.start(_request())
    test = parts["store"].tests[0]
    ids = [q["id"] for q in test["questions"]] + [item["id"] for item in test["lexis"]]
    assert len(ids) == len(set(ids)) == 3
    assert test["questions"][0]["correctAnswer"] == "Two"
    assert test["classroomActivity"] == {"situationSetup": {"en": "You are at a hotel desk."}}


def test_done_run_is_cached(orch, parts):
    run = orch.start(_request())
    cached = parts["cache"].get(run.test_id)
    assert cached["_id"] == run.test_id
    assert cached["audioId"] == run.audio_entry_id
    assert cached["type"] == TEST_TYPE_LISTENING


def test_reading_run_skips_audio(parts, payload_dict):
    payload_dict["passage"] = "The museum opened in 1901.\n\nIt holds many paintings."
    del payload_dict["transcript"]
    parts["generator"].raw = RawResponse(json.dumps(payload_dict))
    orch = Orchestrator(**parts)
    run = orch.start(_request(mode="reading"))

    assert run.stage == Stage.DONE
    assert Stage.AUDIO not in run.history
    assert parts["primary"].calls == []
    assert parts["store"].entries == []
    test = parts["store"].tests[0]
    assert test["test_type"] == TEST_TYPE_READING
    assert test["audio_id"] is None
    assert test["sourceText"].startswith("The museum")


def test_import_skips_generator(orch, parts, raw_response):
    run = orch.start(raw=raw_response)
    assert run.stage == Stage.DONE
    assert parts["generator"].requests == []


def test_envelope_hints_used_when_payload_has_none(parts, payload_dict):
    payload_dict["voiceAssignments"] = {}
    payload_dict["transcript"] = (
        "TITLE: Hotel\nVOICE_ASSIGNMENTS:\nAva: Leda\nBen: Orus\n\nDIALOGUE:\nAva: Hi.\nBen: Welcome."
    )
    parts["generator"].raw = RawResponse(json.dumps(payload_dict))
    orch = Orchestrator(**parts)
    run = orch.start(_request())
    transcript, voices = parts["primary"].calls[0]
    assert transcript == "Ava: Hi.\nBen: Welcome."
    assert voices == {"Ava": "Leda", "Ben": "Orus"}
    assert run.stage == Stage.DONE


def test_no_hints_assigns_by_gender(parts, payload_dict):
    payload_dict["voiceAssignments"] = {}
    parts["generator"].raw = RawResponse(json.dumps(payload_dict))
    run = Orchestrator(**parts).start(_request())
    assert run.primary_voices == {"Ava": "Aoede", "Ben": "Charon"}


def test_stage_callback(parts):
    seen = []
    orch = Orchestrator(**parts, on_stage=lambda stage, run: seen.append(stage))
    orch.start(_request())
    assert seen == [Stage.GENERATING, Stage.AUDIO, Stage.SAVING, Stage.DONE]


# --- Failures before audio ---

def test_invalid_payload_goes_to_error(parts, payload_dict):
    payload_dict["questions"][0]["correctAnswer"] = "Five"
    parts["generator"].raw = RawResponse(json.dumps(payload_dict))
    orch = Orchestrator(**parts)
    run = orch.start(_request())
    assert run.stage == Stage.ERROR
    assert run.failed_stage == Stage.GENERATING
    assert run.reason.startswith("Question 1:")
    assert parts["primary"].calls == []
    assert parts["store"].entries == []


def test_unparseable_response(parts):
    parts["generator"].raw = RawResponse("I cannot produce JSON today.")
    run = Orchestrator(**parts).start(_request())
    assert run.stage == Stage.ERROR
    assert "No JSON object" in run.reason


def test_generation_failure_keeps_selections(parts):
    parts["generator"].error = ContentGenerationError("Content generation failed: HTTP 500")
    orch = Orchestrator(**parts)
    request = _request(speaker_count=3)
    run = orch.start(request)
    assert run.stage == Stage.ERROR
    assert run.request is request
    assert Action.START in orch.allowed_actions
    assert Action.RETRY_SAVE not in orch.allowed_actions


def test_retry_regenerates(parts, raw_response):
    parts["generator"].error = ContentGenerationError("boom")
    orch = Orchestrator(**parts)
    orch.start(_request())
    parts["generator"].error = None
    run = orch.retry()
    assert run.stage == Stage.DONE
    assert len(parts["generator"].requests) == 2
    assert parts["generator"].requests[0] is parts["generator"].requests[1]


def test_unexpected_error_propagates_after_error_stage(parts):
    parts["generator"].error = KeyError("surprise")
    orch = Orchestrator(**parts)
    with pytest.raises(KeyError):
        orch.start(_request())
    assert orch.stage == Stage.ERROR


# --- Audio failure choices ---

def test_primary_failure_waits_for_operator(parts):
    parts["primary"].errors = [_quota_error()]
    orch = Orchestrator(**parts)
    run = orch.start(_request())
    assert run.stage == Stage.AUDIO_FAILED
    assert run.failure_kind == "quota"
    assert run.reason == "Gemini quota exceeded"
    assert parts["secondary"].calls == []
    assert parts["store"].entries == []
    assert run.payload is not None
    assert set(orch.allowed_actions) == {Action.RETRY_SECONDARY, Action.SAVE_WITHOUT_AUDIO, Action.ABANDON}


def test_generic_failure_reason(parts):
    parts["primary"].errors = [SynthesisError("No audio data returned from Gemini", backend=ENGINE_GEMINI)]
    run = Orchestrator(**parts).start(_request())
    assert run.failure_kind == "generic"
    assert run.reason == "No audio data returned from Gemini"


def test_retry_secondary_succeeds(parts):
    parts["primary"].errors = [_quota_error()]
    orch = Orchestrator(**parts)
    orch.start(_request())
    run = orch.retry_secondary()

    assert run.stage == Stage.DONE
    transcript, voices = parts["secondary"].calls[0]
    assert voices == {"Ava": "en-US-AriaNeural", "Ben": "en-US-GuyNeural"}
    entry = parts["store"].entries[0]
    assert entry["engine"] == ENGINE_EDGE
    assert entry["audio"] == EDGE_AUDIO
    assert entry["speaker_voice_map"] == voices


def test_both_backends_fail(parts):
    parts["primary"].errors = [_quota_error()]
    parts["secondary"].errors = [_edge_error()]
    orch = Orchestrator(**parts)
    orch.start(_request())
    run = orch.retry_secondary()

    assert run.stage == Stage.AUDIO_FAILED
    assert run.reason.startswith("Both Gemini and edge-tts failed.")
    assert "segment 2/3" in run.reason
    assert len(run.failures) == 2
    assert run.failures[0].startswith("Gemini:")
    assert parts["store"].entries == []


def test_save_without_audio(parts):
    parts["primary"].errors = [_quota_error()]
    orch = Orchestrator(**parts)
    orch.start(_request())
    run = orch.save_without_audio()

    assert run.stage == Stage.DONE
    entry = parts["store"].entries[0]
    assert entry["audio"] is None
    assert entry["is_transcript_only"] is True
    assert entry["engine"] == ENGINE_NONE
    assert entry["speaker_voice_map"] == {"Ava": "Kore", "Ben": "Puck"}
    assert parts["store"].tests[0]["audio_id"] == "audio-1"


def test_save_without_audio_after_both_fail(parts):
    """The audio-less save stays available after every synthesis failure."""
    parts["primary"].errors = [_quota_error()]
    parts["secondary"].errors = [_edge_error()]
    orch = Orchestrator(**parts)
    orch.start(_request())
    orch.retry_secondary()
    assert orch.save_without_audio().stage == Stage.DONE


def test_abandon(parts):
    parts["primary"].errors = [_quota_error()]
    orch = Orchestrator(**parts)
    request = _request()
    orch.start(request)
    run = orch.abandon()
    assert run.stage == Stage.IDLE
    assert run.payload is None
    assert run.request is request
    assert parts["store"].entries == []


def test_choices_rejected_outside_audio_failed(orch):
    orch.start(_request())
    for action in (orch.retry_secondary, orch.save_without_audio, orch.abandon):
        with pytest.raises(InvalidTransitionError):
            action()


# --- At most one run ---

def test_start_ignored_while_waiting(parts):
    parts["primary"].errors = [_quota_error()]
    orch = Orchestrator(**parts)
    first = orch.start(_request())
    second = orch.start(_request(mode="reading"))
    assert second is first
    assert orch.stage == Stage.AUDIO_FAILED
    assert len(parts["generator"].requests) == 1


def test_start_ignored_while_in_flight(parts, raw_response):
    """A second trigger during generation is a no-op, not a queued run."""
    entered = threading.Event()
    release = threading.Event()

    class SlowGenerator(FakeGenerator):
        def generate(self, request):
            entered.set()
            release.wait(5)
            return super().generate(request)

    parts["generator"] = SlowGenerator(raw=raw_response)
    orch = Orchestrator(**parts)
    worker = threading.Thread(target=orch.start, args=(_request(),))
    worker.start()
    assert entered.wait(5)
    orch.start(_request())
    release.set()
    worker.join(5)

    assert len(parts["generator"].requests) == 1
    assert orch.stage == Stage.DONE


def test_new_run_after_done(orch, parts):
    first = orch.start(_request())
    second = orch.start(_request())
    assert second.run_id != first.run_id
    assert len(parts["store"].tests) == 2


# --- Persistence failures ---

def test_save_failure_keeps_payload_and_audio(parts):
    parts["store"].fail_tests = 1
    orch = Orchestrator(**parts)
    run = orch.start(_request())
    assert run.stage == Stage.ERROR
    assert run.failed_stage == Stage.SAVING
    assert run.audio == GEMINI_AUDIO
    assert run.payload is not None
    assert Action.RETRY_SAVE in orch.allowed_actions


def test_retry_save_does_not_duplicate_entry(parts):
    parts["store"].fail_tests = 1
    orch = Orchestrator(**parts)
    orch.start(_request())
    run = orch.retry_save()
    assert run.stage == Stage.DONE
    assert len(parts["store"].entries) == 1
    assert parts["store"].tests[0]["audio_id"] == "audio-1"
    assert len(parts["primary"].calls) == 1


def test_audio_entry_failure(parts):
    parts["store"].fail_entries = 1
    run = Orchestrator(**parts).start(_request())
    assert run.stage == Stage.ERROR
    assert "audio entry" in run.reason
    assert parts["store"].tests == []


def test_retry_save_rejected_after_generation_error(parts):
    parts["generator"].error = ContentGenerationError("boom")
    orch = Orchestrator(**parts)
    orch.start(_request())
    with pytest.raises(InvalidTransitionError):
        orch.retry_save()


# --- Snapshot and resume ---

def _resume(snapshot, parts):
    return Orchestrator.resume(
        json.loads(json.dumps(snapshot)),
        parts["generator"], parts["primary"], parts["secondary"], parts["store"],
        cache=parts["cache"],
    )


def test_resume_audio_failed(parts):
    parts["primary"].errors = [_quota_error()]
    orch = Orchestrator(**parts)
    orch.start(_request())
    resumed = _resume(orch.snapshot(), parts)

    assert resumed.stage == Stage.AUDIO_FAILED
    assert resumed.run.reason == "Gemini quota exceeded"
    assert resumed.run.primary_voices == {"Ava": "Kore", "Ben": "Puck"}
    assert resumed.run.request == _request()
    run = resumed.retry_secondary()
    assert run.stage == Stage.DONE
    assert parts["store"].entries[0]["engine"] == ENGINE_EDGE


def test_resume_generating_restarts_idle(orch, parts):
    snapshot = orch.snapshot()
    snapshot["stage"] = "generating"
    resumed = _resume(snapshot, parts)
    assert resumed.stage == Stage.IDLE


@pytest.mark.parametrize("stage", ["audio", "saving"])
def test_resume_in_flight_with_payload_waits(orch, parts, stage):
    """Interrupted synthesis or save resumes in the waiting state."""
    orch.start(_request())
    snapshot = orch.snapshot()
    snapshot.update(stage=stage, audio_entry_id=None, test_id=None)
    resumed = _resume(snapshot, parts)
    assert resumed.stage == Stage.AUDIO_FAILED
    assert resumed.run.reason == f"Interrupted during {stage}"


def test_resume_saving_with_entry_offers_retry_save(parts):
    parts["store"].fail_tests = 1
    orch = Orchestrator(**parts)
    orch.start(_request())
    resumed = _resume(orch.snapshot(), parts)
    assert resumed.stage == Stage.ERROR
    assert Action.RETRY_SAVE in resumed.allowed_actions
    assert resumed.retry_save().stage == Stage.DONE
    assert len(parts["store"].entries) == 1


def test_resume_revalidates_payload(orch, parts):
    orch.start(_request())
    snapshot = orch.snapshot()
    snapshot["stage"] = "audio_failed"
    snapshot["payload"]["questions"][0]["correctAnswer"] = "Nope"
    resumed = _resume(snapshot, parts)
    assert resumed.stage == Stage.IDLE
    assert resumed.run.payload is None


def test_resume_done(orch, parts):
    orch.start(_request())
    resumed = _resume(orch.snapshot(), parts)
    assert resumed.stage == Stage.DONE
    assert resumed.run.test_id == "test-1"


def test_snapshot_is_json_safe(parts):
    parts["primary"].errors = [_quota_error()]
    orch = Orchestrator(**parts)
    orch.start(_request())
    snapshot = orch.snapshot()
    assert json.loads(json.dumps(snapshot)) == snapshot
    assert "audio" not in snapshot
    assert snapshot["stage"] == "audio_failed"
