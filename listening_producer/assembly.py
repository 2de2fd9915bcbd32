"""Wrap raw PCM as WAV and splice ordered per-segment audio into one track."""

import io

from pydub import AudioSegment

from listening_producer.constants import (
    PCM_CHANNELS,
    PCM_SAMPLE_RATE,
    PCM_SAMPLE_WIDTH,
    SEGMENT_PAUSE_MS,
)


def is_wav(data: bytes) -> bool:
    return data[:4] == b"RIFF" and data[8:12] == b"WAVE"


def _export_wav(audio: AudioSegment) -> bytes:
    buf = io.BytesIO()
    audio.export(buf, format="wav")
    return buf.getvalue()


def pcm_to_wav(
    pcm: bytes,
    sample_rate: int = PCM_SAMPLE_RATE,
    channels: int = PCM_CHANNELS,
    sample_width: int = PCM_SAMPLE_WIDTH,
) -> bytes:
    """Give raw little-endian PCM a self-describing WAV header.

    Input that is already a RIFF/WAVE container is returned unchanged. A
    trailing partial frame is dropped.
    """
    if is_wav(pcm):
        return pcm
    frame_width = sample_width * channels
    usable = len(pcm) - (len(pcm) % frame_width)
    audio = AudioSegment(
        data=pcm[:usable],
        sample_width=sample_width,
        frame_rate=sample_rate,
        channels=channels,
    )
    return _export_wav(audio)


def concatenate_audio(
    buffers: list[bytes],
    fmt: str = "mp3",
    pause_ms: int = SEGMENT_PAUSE_MS,
) -> bytes:
    """Concatenate encoded audio buffers, in list order, into one WAV track.

    The position of a buffer in the list is its position in the output;
    callers must pass buffers in segment order.
    """
    if not buffers:
        raise ValueError("No audio buffers to concatenate")

    clips = [AudioSegment.from_file(io.BytesIO(data), format=fmt) for data in buffers]

    result = clips[0]
    for clip in clips[1:]:
        if pause_ms:
            result += AudioSegment.silent(duration=pause_ms, frame_rate=result.frame_rate)
        result += clip
    return _export_wav(result)
