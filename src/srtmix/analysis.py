"""Signal utilities: WAV decoding, channel layout, silence trimming, PCM conversion.

All functions operate on numpy arrays shaped (channels, samples), float64,
normalized to [-1, 1]. WAV I/O uses scipy.io.wavfile so uncompressed clips
can be decoded without ffmpeg.
"""

import io

import numpy as np
import scipy.io.wavfile as wavfile


# ---------------------------------------------------------------------------
# WAV I/O
# ---------------------------------------------------------------------------

def read_wav_bytes(data: bytes) -> tuple[np.ndarray, int]:
    """Decode WAV bytes and return (samples, sample_rate).

    - Normalizes integer PCM to float64 in [-1, 1]
    - Passes through float WAVs as float64
    - Keeps every channel; samples are shaped (channels, n)

    Raises:
        ValueError: if the bytes are not a readable WAV file.
    """
    sr, raw = wavfile.read(io.BytesIO(data))

    if raw.dtype == np.uint8:
        samples = (raw.astype(np.float64) - 128.0) / 128.0
    elif np.issubdtype(raw.dtype, np.integer):
        info = np.iinfo(raw.dtype)
        samples = raw.astype(np.float64) / max(abs(info.min), abs(info.max))
    else:
        samples = raw.astype(np.float64)

    if samples.ndim == 1:
        samples = samples[np.newaxis, :]
    else:
        samples = samples.T

    return np.ascontiguousarray(samples), int(sr)


def write_wav_bytes(samples: np.ndarray, sr: int) -> bytes:
    """Encode (channels, n) float samples as 16-bit PCM WAV bytes."""
    buf = io.BytesIO()
    wavfile.write(buf, sr, float_to_int16(samples).T)
    return buf.getvalue()


def match_channels(samples: np.ndarray, channels: int) -> np.ndarray:
    """Convert (c, n) samples to ``channels`` rows.

    Mono is duplicated, a mono target averages, extra channels are dropped.
    """
    current = samples.shape[0]
    if current == channels:
        return samples
    if current == 1:
        return np.repeat(samples, channels, axis=0)
    if channels == 1:
        return samples.mean(axis=0, keepdims=True)
    if current > channels:
        return samples[:channels]
    # Fewer channels than requested: repeat the last one
    extra = np.repeat(samples[-1:], channels - current, axis=0)
    return np.vstack([samples, extra])


# ---------------------------------------------------------------------------
# Levels
# ---------------------------------------------------------------------------

def db_to_amplitude(db: float) -> float:
    return float(10 ** (db / 20))


def peak_dbfs(samples: np.ndarray) -> float:
    """Peak level in dBFS; -inf for silence or an empty buffer."""
    if samples.size == 0:
        return float("-inf")
    peak = float(np.max(np.abs(samples)))
    if peak == 0:
        return float("-inf")
    return 20 * np.log10(peak)


# ---------------------------------------------------------------------------
# Silence trimming
# ---------------------------------------------------------------------------

def trim_silence(
    samples: np.ndarray,
    sr: int,
    threshold_db: float = -50.0,
    min_silence_ms: float = 100.0,
) -> np.ndarray:
    """Remove leading and trailing silence from (channels, n) samples.

    A sample is silent when every channel is at or below ``threshold_db``.
    An edge run of silence is only removed if it lasts at least
    ``min_silence_ms``; shorter runs are kept as-is. A clip that is silent
    throughout comes back empty.
    """
    n = samples.shape[1]
    if n == 0:
        return samples

    threshold = db_to_amplitude(threshold_db)
    envelope = np.max(np.abs(samples), axis=0)
    loud = np.flatnonzero(envelope > threshold)
    if len(loud) == 0:
        return samples[:, :0]

    min_run = int(round(sr * min_silence_ms / 1000))

    start = int(loud[0]) if loud[0] >= min_run else 0
    trailing = n - 1 - int(loud[-1])
    end = int(loud[-1]) + 1 if trailing >= min_run else n

    return samples[:, start:end]


# ---------------------------------------------------------------------------
# PCM conversion
# ---------------------------------------------------------------------------

def float_to_int16(samples: np.ndarray) -> np.ndarray:
    """Clip to [-1, 1] and scale to int16 (negative * 32768, positive * 32767)."""
    clipped = np.clip(samples, -1.0, 1.0)
    scaled = np.where(clipped < 0, clipped * 32768.0, clipped * 32767.0)
    return scaled.astype(np.int16)
