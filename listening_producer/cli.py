"""CLI interface with subcommand routing for the generation pipeline."""

import argparse
import logging
import os
import sys

from listening_producer.cache import TestCache
from listening_producer.config import Settings
from listening_producer.constants import (
    CEFR_LEVELS,
    DEFAULT_DIFFICULTY,
    SESSION_CACHE_FILE,
    VERSION,
)
from listening_producer.generator import ContentGenerator
from listening_producer.models import GenerationRequest, RawResponse
from listening_producer.orchestrator import Orchestrator
from listening_producer.parser import parse_dialogue
from listening_producer.stages import STAGE_CONFIG, Action, Stage
from listening_producer.storage import HttpStore, LocalStore, load_artifact, write_artifact
from listening_producer.transcript import parse_llm_transcript
from listening_producer.tts import EdgeSynthesizer, GeminiSynthesizer
from listening_producer.voices import (
    EDGE_VOICES,
    GEMINI_VOICES,
    resolve_primary_voices,
    resolve_secondary_voices,
)

CHOICES = {
    "1": "secondary",
    "2": "transcript-only",
    "3": "abandon",
}


def _read_file(file_path: str) -> str:
    if not os.path.exists(file_path):
        print(f"Error: File not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    with open(file_path, encoding="utf-8") as f:
        text = f.read()
    if not text.strip():
        print(f"Error: File is empty: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    return text


def _print_stage(stage: Stage, run) -> None:
    config = STAGE_CONFIG[stage]
    print(f"[{config['progress']:3d}%] {config['label']}")


def _build_components(settings: Settings):
    """Content generator, both synthesizers and the store, from settings."""
    generator = ContentGenerator(
        api_key=settings.openai_api_key,
        model=settings.content_model,
        api_url=settings.openai_api_url,
        timeout=settings.timeout,
    )
    primary = GeminiSynthesizer(
        api_key=settings.gemini_api_key,
        model=settings.gemini_tts_model,
        api_url=settings.gemini_api_url,
        timeout=settings.timeout,
    )
    secondary = EdgeSynthesizer(concurrency=settings.edge_concurrency)
    if settings.api_url:
        store = HttpStore(settings.api_url, timeout=settings.timeout)
    else:
        store = LocalStore(settings.output_dir)
    return generator, primary, secondary, store


def _build_orchestrator(settings: Settings, cache: TestCache) -> Orchestrator:
    return Orchestrator(*_build_components(settings), cache=cache, on_stage=_print_stage)


def _cache_path(settings: Settings) -> str:
    return os.path.join(settings.output_dir, SESSION_CACHE_FILE)


def _open_session(settings: Settings) -> TestCache:
    return TestCache.restore(_cache_path(settings))


def _close_session(settings: Settings, cache: TestCache) -> None:
    if not len(cache):
        return
    os.makedirs(settings.output_dir, exist_ok=True)
    cache.persist(_cache_path(settings))


def _write_snapshot(orch: Orchestrator, settings: Settings) -> str:
    os.makedirs(settings.output_dir, exist_ok=True)
    return write_artifact(settings.output_dir, f"run_{orch.run.run_id[:8]}.json", orch.snapshot())


def _ask_choice() -> str | None:
    """Interactive fallback menu. None means no answer could be read."""
    print("What would you like to do?")
    print("  [1] Retry with edge-tts")
    print("  [2] Save without audio (transcript only)")
    print("  [3] Abandon")
    while True:
        try:
            answer = input("Choose 1-3: ").strip()
        except EOFError:
            return None
        if answer in CHOICES:
            return CHOICES[answer]
        print("Please enter 1, 2 or 3.")


def _settle_audio_failure(orch: Orchestrator, fallback: str, settings: Settings) -> None:
    """Apply operator choices until the run leaves audio_failed."""
    while orch.stage == Stage.AUDIO_FAILED:
        print(f"Audio generation failed: {orch.run.reason}", file=sys.stderr)
        choice = fallback
        # A preset choice applies once; a second failure goes back to the operator
        fallback = "ask"
        if choice == "ask":
            choice = _ask_choice() if sys.stdin.isatty() else None
        if choice is None:
            path = _write_snapshot(orch, settings)
            print(f"Run saved to {path}")
            print(f"Resume with 'listening-producer resume {path} --choice secondary|transcript-only|abandon'.")
            return
        if choice == "secondary":
            orch.retry_secondary()
        elif choice == "transcript-only":
            orch.save_without_audio()
        elif choice == "abandon":
            orch.abandon()
            print("Abandoned.")
            return


def _report(orch: Orchestrator) -> None:
    run = orch.run
    if run.stage == Stage.DONE:
        if run.audio_entry_id:
            engine = run.engine or "none"
            print(f"Audio entry: {run.audio_entry_id} ({engine})")
        print(f"Test: {run.test_id}")
        record = orch.cache.get(run.test_id) if orch.cache is not None else None
        if record:
            print(f"Questions: {len(record['questions'])}, lexis items: {len(record['lexis'])}")
        if isinstance(orch.store, LocalStore):
            print(f"Files: {orch.store.directory_for(run.test_id)}")
        print(f"Done: {run.payload.title}")
    elif run.stage == Stage.ERROR:
        print(f"Error: {run.reason}", file=sys.stderr)
        raise SystemExit(1)


def _drive(orch: Orchestrator, fallback: str, settings: Settings) -> None:
    _settle_audio_failure(orch, fallback, settings)
    _report(orch)


def cmd_generate(args):
    """Generate content, synthesize it and save the test."""
    settings = Settings.from_env()
    request = GenerationRequest(
        topic=args.topic or "",
        difficulty=args.difficulty,
        mode=args.mode,
        speaker_count=args.speakers,
        target_minutes=args.minutes,
    )
    cache = _open_session(settings)
    try:
        orch = _build_orchestrator(settings, cache)
        orch.start(request)
        _drive(orch, args.fallback, settings)
    finally:
        _close_session(settings, cache)


def cmd_import(args):
    """Validate a pasted LLM response and run it through synthesis and saving."""
    settings = Settings.from_env()
    text = _read_file(args.file)
    cache = _open_session(settings)
    try:
        orch = _build_orchestrator(settings, cache)
        orch.start(raw=RawResponse(text, source="paste"), mode=args.mode)
        _drive(orch, args.fallback, settings)
    finally:
        _close_session(settings, cache)


def cmd_resume(args):
    """Continue a run saved while waiting on an audio failure."""
    settings = Settings.from_env()
    snapshot_dir, snapshot_file = os.path.split(os.path.abspath(args.snapshot))
    try:
        snapshot = load_artifact(snapshot_dir, snapshot_file)
    except ValueError as e:
        print(f"Error: Invalid snapshot: {e}", file=sys.stderr)
        raise SystemExit(1)
    if snapshot is None:
        print(f"Error: File not found: {args.snapshot}", file=sys.stderr)
        raise SystemExit(1)
    if not isinstance(snapshot, dict):
        print("Error: Invalid snapshot: not a JSON object", file=sys.stderr)
        raise SystemExit(1)

    cache = _open_session(settings)
    try:
        orch = Orchestrator.resume(
            snapshot,
            *_build_components(settings),
            cache=cache,
            on_stage=_print_stage,
        )
        print(f"Resumed in stage: {orch.stage.value}")
        if args.choice == "retry-save" and Action.RETRY_SAVE in orch.allowed_actions:
            orch.retry_save()
        elif orch.stage == Stage.AUDIO_FAILED:
            choice = args.choice if args.choice in CHOICES.values() else "ask"
            _settle_audio_failure(orch, choice, settings)
        _report(orch)
    finally:
        _close_session(settings, cache)


def cmd_analyze(args):
    """Show speakers, segments and both voice maps for a transcript file."""
    text = _read_file(args.file)
    parsed = parse_llm_transcript(text)
    analysis = parse_dialogue(parsed.dialogue_text)
    primary = resolve_primary_voices(analysis.speakers, parsed.voice_assignments)
    secondary = resolve_secondary_voices(analysis.speakers, primary)

    if parsed.title:
        print(f"Title:    {parsed.title}")
    kind = "dialogue" if analysis.is_dialogue else "narration"
    print(f"Segments: {len(analysis.segments)} ({kind})")
    print("Speakers:")
    for speaker in analysis.speakers:
        print(f"  {speaker:<15} → {primary.get(speaker, '?'):<14} {secondary.get(speaker, '?')}")
    if args.segments:
        print("Lines:")
        for i, seg in enumerate(analysis.segments, start=1):
            print(f"  {i:3d}. {seg.speaker}: {seg.text}")


def cmd_voices(args):
    """List available voices."""
    catalog = EDGE_VOICES if args.backend == "edge" else GEMINI_VOICES
    filter_str = args.filter.lower() if args.filter else None
    voices = list(catalog)
    if filter_str:
        voices = [v for v in voices if filter_str in v.name.lower() or filter_str == v.gender.value.lower()]
    if not voices:
        print("No matching voices found.")
        return
    print("Available voices:")
    for v in voices:
        style = f" - {v.style}" if v.style else ""
        print(f"  {v.name:<22} {v.gender.value}{style}")


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="listening-producer",
        description="Listening Producer - generate EFL listening and reading tests with multi-speaker audio",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    fallback_help = "What to do if Gemini synthesis fails (default: ask)"

    # generate
    gen_parser = subparsers.add_parser("generate", help="Generate, synthesize and save a test")
    gen_parser.add_argument("--topic", help="Topic for the dialogue or passage")
    gen_parser.add_argument("--difficulty", choices=CEFR_LEVELS, default=DEFAULT_DIFFICULTY)
    gen_parser.add_argument("--mode", choices=["listening", "reading"], default="listening")
    gen_parser.add_argument("--speakers", type=int, choices=[1, 2, 3], default=2)
    gen_parser.add_argument("--minutes", type=int, default=5, help="Target activity length")
    gen_parser.add_argument("--fallback", choices=["ask", "secondary", "transcript-only", "abandon"],
                            default="ask", help=fallback_help)
    gen_parser.set_defaults(func=cmd_generate)

    # import
    import_parser = subparsers.add_parser("import", help="Run a pasted LLM JSON response through the pipeline")
    import_parser.add_argument("file", help="File holding the LLM response")
    import_parser.add_argument("--mode", choices=["listening", "reading"], default="listening")
    import_parser.add_argument("--fallback", choices=["ask", "secondary", "transcript-only", "abandon"],
                               default="ask", help=fallback_help)
    import_parser.set_defaults(func=cmd_import)

    # resume
    resume_parser = subparsers.add_parser("resume", help="Continue a saved run")
    resume_parser.add_argument("snapshot", help="Snapshot file written by generate/import")
    resume_parser.add_argument("--choice", choices=["secondary", "transcript-only", "abandon", "retry-save"])
    resume_parser.set_defaults(func=cmd_resume)

    # analyze
    analyze_parser = subparsers.add_parser("analyze", help="Show speakers and voices for a transcript")
    analyze_parser.add_argument("file", help="Transcript text file")
    analyze_parser.add_argument("--segments", action="store_true", help="Also list every segment")
    analyze_parser.set_defaults(func=cmd_analyze)

    # voices
    voices_parser = subparsers.add_parser("voices", help="List available voices")
    voices_parser.add_argument("--backend", choices=["gemini", "edge"], default="gemini")
    voices_parser.add_argument("--filter", help="Filter voices by substring or gender")
    voices_parser.set_defaults(func=cmd_voices)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return

    args.func(args)
