"""Audio decoding and tempo correction via ffmpeg."""

import logging
import os
import shutil
import subprocess

import numpy as np

from srtmix.analysis import match_channels, read_wav_bytes
from srtmix.errors import EncoderUnavailableError

logger = logging.getLogger(__name__)

FFMPEG = os.environ.get("SRTMIX_FFMPEG", "ffmpeg")


class FFmpegError(RuntimeError):
    """Raised when an ffmpeg invocation exits with an error."""
    pass


def check_ffmpeg() -> None:
    """Raise EncoderUnavailableError if the ffmpeg executable is not on PATH."""
    if shutil.which(FFMPEG) is None:
        raise EncoderUnavailableError(f"{FFMPEG} not found on PATH")


def _run_ffmpeg(args: list[str], data: bytes, timeout: float = 120) -> bytes:
    """Run ffmpeg with ``data`` on stdin and return stdout."""
    cmd = [FFMPEG, "-hide_banner", "-v", "error", *args]
    result = subprocess.run(cmd, input=data, capture_output=True, timeout=timeout)
    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        last_line = stderr.splitlines()[-1] if stderr else "no output"
        raise FFmpegError(f"ffmpeg exited with status {result.returncode}: {last_line}")
    return result.stdout


def _pcm_to_channels(pcm: bytes, channels: int) -> np.ndarray:
    interleaved = np.frombuffer(pcm, dtype="<f4")
    usable = len(interleaved) - len(interleaved) % channels
    return interleaved[:usable].reshape(-1, channels).T.astype(np.float64)


def _channels_to_pcm(samples: np.ndarray) -> bytes:
    return np.ascontiguousarray(samples.T, dtype="<f4").tobytes()


def decode_clip(data: bytes, sample_rate: int, channels: int) -> np.ndarray:
    """Decode an audio file's bytes into (channels, n) float samples.

    PCM or float WAV files already at ``sample_rate`` are read directly;
    everything else (other rates, mu-law/ADPCM WAVs, other formats) is
    decoded and resampled by ffmpeg.
    """
    if data[:4] == b"RIFF":
        try:
            samples, sr = read_wav_bytes(data)
        except ValueError as e:
            logger.debug(f"scipy cannot read this RIFF file ({e}), decoding via ffmpeg")
        else:
            if sr == sample_rate:
                return match_channels(samples, channels)
            logger.debug(f"WAV at {sr}Hz, resampling to {sample_rate}Hz via ffmpeg")

    pcm = _run_ffmpeg(
        [
            "-i", "pipe:0", "-vn",
            "-f", "f32le", "-ar", str(sample_rate), "-ac", str(channels),
            "pipe:1",
        ],
        data,
    )
    return _pcm_to_channels(pcm, channels)


def time_stretch(samples: np.ndarray, sample_rate: int, rate: float) -> np.ndarray:
    """Change tempo by ``rate`` without changing pitch (ffmpeg atempo).

    rate > 1.0 = faster (shorter), rate < 1.0 = slower (longer).
    rate = 1.0 or an empty buffer is a no-op.
    """
    if abs(rate - 1.0) < 1e-9 or samples.shape[1] == 0:
        return samples

    channels = samples.shape[0]
    fmt = ["-f", "f32le", "-ar", str(sample_rate), "-ac", str(channels)]
    pcm = _run_ffmpeg(
        [*fmt, "-i", "pipe:0", "-af", f"atempo={rate:.6f}", *fmt, "pipe:1"],
        _channels_to_pcm(samples),
    )
    return _pcm_to_channels(pcm, channels)
