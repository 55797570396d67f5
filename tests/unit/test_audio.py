"""Tests for narration payload helpers."""

import base64
import io
import wave

import pytest

from lumina_providers import GenerationError
from lumina_providers.audio import (
    decode_audio_payload,
    encode_audio_payload,
    pcm_duration_seconds,
    pcm_to_wav,
)


def test_pcm_is_wrapped_as_mono_24khz_wav() -> None:
    pcm = b"\x01\x00" * 2400
    wav_bytes = pcm_to_wav(pcm)

    with wave.open(io.BytesIO(wav_bytes), "rb") as wav:
        assert wav.getnchannels() == 1
        assert wav.getsampwidth() == 2
        assert wav.getframerate() == 24000
        assert wav.getnframes() == 2400
    assert pcm_duration_seconds(pcm) == pytest.approx(0.1)


def test_trailing_partial_frame_is_dropped() -> None:
    wav_bytes = pcm_to_wav(b"\x00\x00\x00")
    with wave.open(io.BytesIO(wav_bytes), "rb") as wav:
        assert wav.getnframes() == 1


def test_decode_accepts_plain_and_data_url_payloads() -> None:
    pcm = b"\x00\x10" * 8
    encoded = encode_audio_payload(pcm)
    assert decode_audio_payload(encoded) == pcm
    assert decode_audio_payload(f"data:audio/pcm;base64,{encoded}") == pcm


def test_decode_rejects_invalid_base64() -> None:
    with pytest.raises(GenerationError):
        decode_audio_payload("not base64!!")
    assert base64.b64decode(encode_audio_payload(b"")) == b""
