"""Shared fixtures: synthetic buffers (tones, silence gaps, noise)"""
import numpy as np
import pytest

from audio_types import SampleBuffer

SR = 44100


def tone(duration, freq=440.0, amp=0.5, sr=SR):
    t = np.arange(int(round(duration * sr))) / sr
    return (amp * np.sin(2 * np.pi * freq * t)).astype(np.float32)


def speech_with_gap(total=10.0, gap_start=4.0, gap_end=6.0, sr=SR, channels=1):
    """Tone ตลอด ยกเว้นช่วง [gap_start, gap_end) ที่เป็นศูนย์"""
    data = tone(total, sr=sr)
    data[int(gap_start * sr):int(gap_end * sr)] = 0.0
    return SampleBuffer.from_channels([data] * channels, sr)


@pytest.fixture
def sr():
    return SR


@pytest.fixture
def gap_buffer():
    return speech_with_gap()


@pytest.fixture
def stereo_gap_buffer():
    return speech_with_gap(channels=2)


@pytest.fixture
def short_tone():
    return SampleBuffer.from_channels([tone(0.5)], SR)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
