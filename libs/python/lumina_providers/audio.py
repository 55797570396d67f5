"""Helpers for the raw PCM narration payloads returned by speech endpoints."""

from __future__ import annotations

import base64
import binascii
import io
import wave

from .exceptions import GenerationError

SPEECH_SAMPLE_RATE = 24000
SPEECH_CHANNELS = 1
SPEECH_SAMPLE_WIDTH = 2  # 16-bit signed little endian


def encode_audio_payload(pcm: bytes) -> str:
    return base64.b64encode(pcm).decode("ascii")


def decode_audio_payload(payload: str) -> bytes:
    """Decode a base64 narration payload, accepting ``data:`` URLs."""

    if payload.startswith("data:"):
        _, _, payload = payload.partition(",")
    try:
        return base64.b64decode(payload, validate=True)
    except (ValueError, binascii.Error) as exc:
        raise GenerationError("Audio payload is not valid base64") from exc


def pcm_to_wav(
    pcm: bytes,
    *,
    sample_rate: int = SPEECH_SAMPLE_RATE,
    channels: int = SPEECH_CHANNELS,
    sample_width: int = SPEECH_SAMPLE_WIDTH,
) -> bytes:
    """Wrap raw PCM frames in a WAV container so they can be played back."""

    frame_size = channels * sample_width
    if len(pcm) % frame_size:
        # Drop a trailing partial frame rather than emit a corrupt file.
        pcm = pcm[: len(pcm) - (len(pcm) % frame_size)]

    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(channels)
        wav.setsampwidth(sample_width)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm)
    return buffer.getvalue()


def pcm_duration_seconds(pcm: bytes) -> float:
    return len(pcm) / float(SPEECH_SAMPLE_RATE * SPEECH_CHANNELS * SPEECH_SAMPLE_WIDTH)


__all__ = [
    "SPEECH_CHANNELS",
    "SPEECH_SAMPLE_RATE",
    "SPEECH_SAMPLE_WIDTH",
    "decode_audio_payload",
    "encode_audio_payload",
    "pcm_duration_seconds",
    "pcm_to_wav",
]
