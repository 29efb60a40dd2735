"""Shared test fixtures."""

import io
import shutil

import numpy as np
import pytest
import scipy.io.wavfile as wavfile

SR = 44100

requires_ffmpeg = pytest.mark.skipif(
    shutil.which("ffmpeg") is None, reason="ffmpeg not installed"
)


def make_sine(freq: float, duration: float, sr: int = SR, amplitude: float = 0.5) -> np.ndarray:
    """Generate a mono sine wave."""
    t = np.arange(int(round(sr * duration))) / sr
    return amplitude * np.sin(2 * np.pi * freq * t)


def wav_bytes(samples: np.ndarray, sr: int = SR) -> bytes:
    """Encode mono (n,) or (channels, n) float samples as int16 WAV bytes."""
    samples = np.atleast_2d(samples)
    int16 = (np.clip(samples, -1.0, 1.0) * 32767).astype(np.int16)
    buf = io.BytesIO()
    wavfile.write(buf, sr, int16.T if int16.shape[0] > 1 else int16[0])
    return buf.getvalue()


@pytest.fixture
def tone_wav():
    """Factory for WAV bytes holding a tone of the given duration."""
    def _make(duration: float, freq: float = 440.0, sr: int = SR) -> bytes:
        return wav_bytes(make_sine(freq, duration, sr), sr)
    return _make
