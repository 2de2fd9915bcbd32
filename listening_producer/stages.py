"""Pure generation state machine: stages, transitions and allowed next actions.

Nothing here performs I/O. The orchestrator asks this module whether an
action is legal and which stage it leads to.
"""

from enum import Enum

from listening_producer.errors import InvalidTransitionError


class Stage(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    AUDIO = "audio"
    AUDIO_FAILED = "audio_failed"
    SAVING = "saving"
    DONE = "done"
    ERROR = "error"


class Action(str, Enum):
    START = "start"
    LISTENING_READY = "listening_ready"
    READING_READY = "reading_ready"
    FAIL = "fail"
    SYNTHESIZED = "synthesized"
    SYNTHESIS_FAILED = "synthesis_failed"
    RETRY_SECONDARY = "retry_secondary"
    SAVE_WITHOUT_AUDIO = "save_without_audio"
    ABANDON = "abandon"
    SAVED = "saved"
    RETRY_SAVE = "retry_save"


TRANSITIONS = {
    Stage.IDLE: {
        Action.START: Stage.GENERATING,
    },
    Stage.GENERATING: {
        Action.LISTENING_READY: Stage.AUDIO,
        Action.READING_READY: Stage.SAVING,
        Action.FAIL: Stage.ERROR,
    },
    Stage.AUDIO: {
        Action.SYNTHESIZED: Stage.SAVING,
        Action.SYNTHESIS_FAILED: Stage.AUDIO_FAILED,
        Action.FAIL: Stage.ERROR,
    },
    # Waiting state: operator must pick one of these
    Stage.AUDIO_FAILED: {
        Action.RETRY_SECONDARY: Stage.AUDIO,
        Action.SAVE_WITHOUT_AUDIO: Stage.SAVING,
        Action.ABANDON: Stage.IDLE,
    },
    Stage.SAVING: {
        Action.SAVED: Stage.DONE,
        Action.FAIL: Stage.ERROR,
    },
    Stage.DONE: {
        Action.START: Stage.GENERATING,
    },
    Stage.ERROR: {
        Action.START: Stage.GENERATING,
        Action.RETRY_SAVE: Stage.SAVING,
    },
}

# Stages in which a run is in flight and START must be ignored
ACTIVE_STAGES = frozenset({Stage.GENERATING, Stage.AUDIO, Stage.AUDIO_FAILED, Stage.SAVING})

STAGE_CONFIG = {
    Stage.IDLE: {"label": "Ready", "progress": 0},
    Stage.GENERATING: {"label": "Generating content", "progress": 20},
    Stage.AUDIO: {"label": "Synthesizing audio", "progress": 50},
    Stage.AUDIO_FAILED: {"label": "Audio generation failed", "progress": 50},
    Stage.SAVING: {"label": "Saving", "progress": 80},
    Stage.DONE: {"label": "Done", "progress": 100},
    Stage.ERROR: {"label": "Failed", "progress": 0},
}


def allowed_actions(stage: Stage, failed_stage: Stage | None = None) -> list[Action]:
    """Actions the operator or pipeline may take from stage.

    RETRY_SAVE out of ERROR is only offered when the run failed while saving.
    """
    stage = Stage(stage)
    actions = list(TRANSITIONS.get(stage, {}))
    if stage == Stage.ERROR and failed_stage != Stage.SAVING:
        actions.remove(Action.RETRY_SAVE)
    return actions


def next_stage(stage: Stage, action: Action, failed_stage: Stage | None = None) -> Stage:
    """Return the stage action leads to, or raise InvalidTransitionError."""
    stage, action = Stage(stage), Action(action)
    if action not in allowed_actions(stage, failed_stage):
        raise InvalidTransitionError(stage.value, action.value)
    return TRANSITIONS[stage][action]


def is_active(stage: Stage) -> bool:
    return Stage(stage) in ACTIVE_STAGES


def describe(stage: Stage) -> str:
    config = STAGE_CONFIG[Stage(stage)]
    return f"{config['label']} ({config['progress']}%)"
