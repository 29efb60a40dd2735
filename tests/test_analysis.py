"""Tests for signal utilities (WAV decoding, channels, silence trimming, PCM)."""

import numpy as np
import pytest

from conftest import SR, make_sine, wav_bytes
from srtmix.analysis import (
    db_to_amplitude,
    float_to_int16,
    match_channels,
    peak_dbfs,
    read_wav_bytes,
    trim_silence,
    write_wav_bytes,
)


# ===========================================================================
# 1. read_wav_bytes / write_wav_bytes
# ===========================================================================

class TestReadWavBytes:
    def test_mono(self):
        samples, sr = read_wav_bytes(wav_bytes(make_sine(440, 0.5)))
        assert sr == SR
        assert samples.shape == (1, SR // 2)
        assert samples.dtype == np.float64
        assert np.max(np.abs(samples)) <= 1.0

    def test_stereo_keeps_channels(self):
        left = make_sine(440, 0.1)
        right = np.zeros_like(left)
        samples, _ = read_wav_bytes(wav_bytes(np.vstack([left, right])))
        assert samples.shape == (2, len(left))
        assert np.all(samples[1] == 0)
        np.testing.assert_allclose(samples[0], left, atol=1e-4)

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            read_wav_bytes(b"RIFF not really a wav file")

    def test_round_trip_write(self):
        original = np.vstack([make_sine(220, 0.05), make_sine(330, 0.05)])
        samples, sr = read_wav_bytes(write_wav_bytes(original, 22050))
        assert sr == 22050
        np.testing.assert_allclose(samples, original, atol=1e-4)


# ===========================================================================
# 2. match_channels
# ===========================================================================

class TestMatchChannels:
    def test_mono_to_stereo(self):
        mono = np.array([[0.1, 0.2, 0.3]])
        out = match_channels(mono, 2)
        assert out.shape == (2, 3)
        np.testing.assert_array_equal(out[0], out[1])

    def test_stereo_to_mono_averages(self):
        out = match_channels(np.array([[1.0, 0.0], [0.0, 1.0]]), 1)
        np.testing.assert_allclose(out, [[0.5, 0.5]])

    def test_drops_extra_channels(self):
        out = match_channels(np.zeros((6, 4)), 2)
        assert out.shape == (2, 4)

    def test_unchanged(self):
        samples = np.zeros((2, 4))
        assert match_channels(samples, 2) is samples


# ===========================================================================
# 3. levels
# ===========================================================================

def test_db_to_amplitude():
    assert db_to_amplitude(0) == pytest.approx(1.0)
    assert db_to_amplitude(-20) == pytest.approx(0.1)
    assert db_to_amplitude(-50) == pytest.approx(0.0031623, rel=1e-4)


def test_peak_dbfs():
    assert peak_dbfs(np.array([[0.5, -1.0]])) == pytest.approx(0.0)
    assert peak_dbfs(np.array([[2.0]])) == pytest.approx(6.0206, rel=1e-4)
    assert peak_dbfs(np.zeros((2, 5))) == float("-inf")
    assert peak_dbfs(np.zeros((2, 0))) == float("-inf")


# ===========================================================================
# 4. trim_silence
# ===========================================================================

def _with_padding(lead_s: float, tone_s: float, tail_s: float) -> np.ndarray:
    tone = make_sine(440, tone_s)
    return np.concatenate([
        np.zeros(int(SR * lead_s)), tone, np.zeros(int(SR * tail_s)),
    ])[np.newaxis, :]


class TestTrimSilence:
    def test_trims_long_edges(self):
        samples = _with_padding(0.5, 1.0, 0.3)
        out = trim_silence(samples, SR)
        assert out.shape[1] / SR == pytest.approx(1.0, abs=0.01)

    def test_keeps_short_edges(self):
        """Silent runs shorter than the minimum are left alone."""
        samples = _with_padding(0.05, 1.0, 0.05)
        out = trim_silence(samples, SR, min_silence_ms=100)
        assert out.shape[1] == samples.shape[1]

    def test_only_long_edge_trimmed(self):
        samples = _with_padding(0.5, 1.0, 0.05)
        out = trim_silence(samples, SR)
        assert out.shape[1] / SR == pytest.approx(1.05, abs=0.01)

    def test_quiet_noise_counts_as_silence(self):
        samples = _with_padding(0.5, 1.0, 0.5)
        samples[0, :SR // 2] = 0.001  # about -60 dBFS
        out = trim_silence(samples, SR, threshold_db=-50)
        assert out.shape[1] / SR == pytest.approx(1.0, abs=0.01)

    def test_all_silent_becomes_empty(self):
        out = trim_silence(np.zeros((2, SR)), SR)
        assert out.shape == (2, 0)

    def test_any_loud_channel_counts(self):
        samples = np.zeros((2, SR))
        samples[1, SR // 2:] = 0.5
        out = trim_silence(samples, SR)
        assert out.shape == (2, SR // 2)

    def test_empty_input(self):
        out = trim_silence(np.zeros((1, 0)), SR)
        assert out.shape == (1, 0)


# ===========================================================================
# 5. float_to_int16
# ===========================================================================

def test_float_to_int16_scaling():
    out = float_to_int16(np.array([-1.0, -0.5, 0.0, 0.5, 1.0]))
    assert out.dtype == np.int16
    assert list(out) == [-32768, -16384, 0, 16383, 32767]


def test_float_to_int16_clips():
    out = float_to_int16(np.array([-3.0, 3.0]))
    assert list(out) == [-32768, 32767]
