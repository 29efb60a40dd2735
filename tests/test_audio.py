"""Tests for ffmpeg-backed decoding and tempo correction."""

import struct
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from conftest import SR, make_sine, requires_ffmpeg, wav_bytes
from srtmix import audio
from srtmix.audio import FFmpegError, _run_ffmpeg, check_ffmpeg, decode_clip, time_stretch
from srtmix.errors import EncoderUnavailableError


def _mulaw_wav(payload: bytes, sr: int = SR) -> bytes:
    """Mono 8-bit mu-law WAV (format tag 7), which scipy cannot read."""
    fmt = struct.pack("<HHIIHH", 7, 1, sr, sr, 1, 8)
    body = (
        b"WAVE"
        + b"fmt " + struct.pack("<I", len(fmt)) + fmt
        + b"data" + struct.pack("<I", len(payload)) + payload
    )
    return b"RIFF" + struct.pack("<I", len(body)) + body


class TestCheckFfmpeg:
    def test_missing_binary(self, monkeypatch):
        monkeypatch.setattr(audio, "FFMPEG", "/nonexistent/ffmpeg")
        with pytest.raises(EncoderUnavailableError, match="not found"):
            check_ffmpeg()

    def test_found(self, monkeypatch):
        monkeypatch.setattr(audio.shutil, "which", lambda name: f"/usr/bin/{name}")
        check_ffmpeg()


class TestRunFfmpeg:
    @patch("srtmix.audio.subprocess.run")
    def test_nonzero_exit_raises_with_last_line(self, mock_run):
        mock_run.return_value = MagicMock(
            returncode=1, stdout=b"", stderr=b"first line\npipe:0: Invalid data found",
        )
        with pytest.raises(FFmpegError, match="Invalid data found"):
            _run_ffmpeg(["-i", "pipe:0"], b"junk")

    @patch("srtmix.audio.subprocess.run")
    def test_passes_input_and_returns_stdout(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout=b"pcm", stderr=b"")
        assert _run_ffmpeg(["-i", "pipe:0"], b"data") == b"pcm"
        cmd = mock_run.call_args[0][0]
        assert cmd[0] == audio.FFMPEG
        assert "-hide_banner" in cmd
        assert mock_run.call_args[1]["input"] == b"data"


class TestDecodeClip:
    @patch("srtmix.audio._run_ffmpeg")
    def test_wav_at_master_rate_skips_ffmpeg(self, mock_run):
        samples = decode_clip(wav_bytes(make_sine(440, 0.25)), SR, 2)
        mock_run.assert_not_called()
        assert samples.shape == (2, SR // 4)
        np.testing.assert_array_equal(samples[0], samples[1])

    @patch("srtmix.audio._run_ffmpeg")
    def test_mulaw_wav_falls_back_to_ffmpeg(self, mock_run):
        mock_run.return_value = np.zeros((50, 2), dtype="<f4").tobytes()
        samples = decode_clip(_mulaw_wav(b"\xff" * 800), SR, 2)
        mock_run.assert_called_once()
        assert samples.shape == (2, 50)

    @patch("srtmix.audio._run_ffmpeg", side_effect=FFmpegError("Invalid data found"))
    def test_corrupt_riff_reports_ffmpeg_error(self, mock_run):
        with pytest.raises(FFmpegError):
            decode_clip(b"RIFFgarbage", SR, 2)
        mock_run.assert_called_once()

    @patch("srtmix.audio._run_ffmpeg")
    def test_other_formats_go_through_ffmpeg(self, mock_run):
        frames = np.zeros((100, 2), dtype="<f4")
        frames[:, 1] = 0.5
        mock_run.return_value = frames.tobytes()
        samples = decode_clip(b"ID3 fake mp3", SR, 2)
        args = mock_run.call_args[0][0]
        assert args[args.index("-ar") + 1] == str(SR)
        assert args[args.index("-ac") + 1] == "2"
        assert samples.shape == (2, 100)
        assert np.all(samples[1] == 0.5)

    @requires_ffmpeg
    def test_resamples_other_rates(self):
        samples = decode_clip(wav_bytes(make_sine(440, 1.0, sr=22050), sr=22050), SR, 2)
        assert samples.shape[0] == 2
        assert samples.shape[1] / SR == pytest.approx(1.0, abs=0.02)


class TestTimeStretch:
    @patch("srtmix.audio._run_ffmpeg")
    def test_unity_rate_is_noop(self, mock_run):
        samples = np.ones((2, 100))
        assert time_stretch(samples, SR, 1.0) is samples
        mock_run.assert_not_called()

    @patch("srtmix.audio._run_ffmpeg")
    def test_empty_is_noop(self, mock_run):
        samples = np.zeros((2, 0))
        assert time_stretch(samples, SR, 1.5) is samples
        mock_run.assert_not_called()

    @patch("srtmix.audio._run_ffmpeg")
    def test_builds_atempo_filter(self, mock_run):
        mock_run.return_value = np.zeros(20, dtype="<f4").tobytes()
        out = time_stretch(np.ones((2, 20)), SR, 1.2)
        args = mock_run.call_args[0][0]
        assert args[args.index("-af") + 1] == "atempo=1.200000"
        assert out.shape == (2, 10)

    @requires_ffmpeg
    def test_faster_is_shorter(self):
        tone = make_sine(440, 2.0)
        out = time_stretch(np.vstack([tone, tone]), SR, 2.0)
        assert out.shape[0] == 2
        assert out.shape[1] / SR == pytest.approx(1.0, abs=0.05)

    @requires_ffmpeg
    def test_slower_is_longer(self):
        out = time_stretch(make_sine(440, 1.0)[np.newaxis, :], SR, 0.5)
        assert out.shape[1] / SR == pytest.approx(2.0, abs=0.05)
