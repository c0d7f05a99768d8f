"""Pytest configuration and fixtures for voice stress detector tests."""

import asyncio

import numpy as np
import pytest

from voicestress.config import SAMPLE_RATE


def make_sine(frequency, duration=1.0, amplitude=1.0, sample_rate=SAMPLE_RATE):
    t = np.arange(int(sample_rate * duration)) / sample_rate
    return (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)


def make_stressed_clip(sample_rate=SAMPLE_RATE, duration=3.0):
    """
    Loud 320 Hz square wave gated in 1024-sample frames (3 loud, 2 quiet)
    with faint noise in the gaps: shouting, high pitch, bursty energy.
    """
    rng = np.random.default_rng(7)
    n = int(sample_rate * duration)
    t = np.arange(n) / sample_rate

    loud = np.sign(np.sin(2 * np.pi * 320 * t))
    gate = (np.arange(n) // 1024) % 5 < 3
    quiet = rng.normal(0, 0.01, n)

    return np.where(gate, loud, quiet).astype(np.float32)


def make_calm_speech(sample_rate=SAMPLE_RATE, duration=3.0):
    """180 Hz voiced tone with two harmonics at conversational level."""
    t = np.arange(int(sample_rate * duration)) / sample_rate
    f0 = 180
    audio = (
        0.35 * np.sin(2 * np.pi * f0 * t)
        + 0.15 * np.sin(2 * np.pi * 2 * f0 * t)
        + 0.10 * np.sin(2 * np.pi * 3 * f0 * t)
    )
    return audio.astype(np.float32)


class FakeAudioCapture:
    """In-memory stand-in for AudioCapture that replays scripted clips."""

    def __init__(self, clips=None, default=None, permission=True):
        self.clips = list(clips or [])
        self.default = default if default is not None else np.zeros(1024, dtype=np.float32)
        self.permission = permission

        self.capture_calls = 0
        self.configure_calls = 0
        self.abort_calls = 0
        self.active_captures = 0
        self.max_active_captures = 0

    def request_permissions(self):
        return self.permission

    def configure_session(self):
        self.configure_calls += 1

    async def capture_clip(self, duration_ms):
        self.capture_calls += 1
        self.active_captures += 1
        self.max_active_captures = max(self.max_active_captures, self.active_captures)
        try:
            await asyncio.sleep(duration_ms / 1000.0)
            item = self.clips.pop(0) if self.clips else self.default
            if isinstance(item, Exception):
                raise item
            return item
        finally:
            self.active_captures -= 1

    def abort(self):
        self.abort_calls += 1


def make_stub_interpreter(probabilities):
    """MagicMock interpreter whose predict returns fixed probabilities."""
    from unittest.mock import MagicMock

    stub = MagicMock()
    probabilities = np.asarray(probabilities, dtype=np.float32)
    stub.predict.return_value = {
        'probabilities': probabilities,
        'predicted_class': 'stub',
        'confidence': float(np.max(probabilities)),
        'class_index': int(np.argmax(probabilities)),
    }
    stub.get_model_info.return_value = {"status": "stub"}
    return stub


@pytest.fixture
def sample_rate():
    return SAMPLE_RATE


@pytest.fixture
def stressed_clip():
    return make_stressed_clip()


@pytest.fixture
def calm_speech():
    return make_calm_speech()


@pytest.fixture
def silent_clip():
    return np.zeros(3 * SAMPLE_RATE, dtype=np.float32)


@pytest.fixture
def missing_model_path(tmp_path):
    return str(tmp_path / "emotion_model.tflite")
