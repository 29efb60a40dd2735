"""Lanczos (windowed-sinc) resampling at arbitrary, non-integer step sizes.

A ratio r means the read cursor advances r input samples per output sample:
r > 1 shortens the signal and raises its pitch, r < 1 does the opposite.
Samples outside the buffer are treated as zero, so the first and last few
output samples of a stream carry small edge artifacts.
"""

import math

import numpy as np

LANCZOS_A = 3
RESAMPLE_BLOCK_SIZE = 16384


def lanczos(x: float, a: int = LANCZOS_A) -> float:
    """Lanczos kernel: sinc(x) * sinc(x / a) on (-a, a), zero elsewhere."""
    if x == 0:
        return 1.0
    if abs(x) >= a:
        return 0.0
    pi_x = math.pi * x
    return a * math.sin(pi_x) * math.sin(pi_x / a) / (pi_x * pi_x)


def lanczos_kernel(x: np.ndarray, a: int = LANCZOS_A) -> np.ndarray:
    """Vectorized lanczos()."""
    x = np.asarray(x, dtype=np.float64)
    out = np.zeros_like(x)
    inside = np.abs(x) < a
    xi = x[inside]
    pi_x = np.pi * xi
    with np.errstate(divide="ignore", invalid="ignore"):
        values = a * np.sin(pi_x) * np.sin(pi_x / a) / (pi_x * pi_x)
    values[xi == 0] = 1.0
    out[inside] = values
    return out


def lanczos_interpolate(buffer: np.ndarray, index: float, a: int = LANCZOS_A) -> float:
    """Interpolate one sample of ``buffer`` at fractional position ``index``."""
    i = math.floor(index)
    total = 0.0
    for j in range(i - a + 1, i + a + 1):
        if 0 <= j < len(buffer):
            total += buffer[j] * lanczos(index - j, a)
    return total


def interpolate(buffer: np.ndarray, positions: np.ndarray, a: int = LANCZOS_A) -> np.ndarray:
    """Vectorized lanczos_interpolate() over many positions."""
    positions = np.asarray(positions, dtype=np.float64)
    if len(positions) == 0:
        return np.zeros(0)
    if len(buffer) == 0:
        return np.zeros(len(positions))

    base = np.floor(positions).astype(np.int64)
    taps = base[:, None] + np.arange(-a + 1, a + 1)[None, :]
    weights = lanczos_kernel(positions[:, None] - taps, a)
    valid = (taps >= 0) & (taps < len(buffer))
    values = np.where(valid, buffer[np.clip(taps, 0, len(buffer) - 1)], 0.0)
    return np.sum(values * weights, axis=1)


class StreamingResampler:
    """Block-by-block resampler for a single channel.

    Input that still lies under the kernel is carried over to the next block
    together with the fractional read cursor, so output is the same whether
    the signal arrives in one block or many. Call ``flush()`` after the last
    block to emit the tail.
    """

    def __init__(self, ratio: float, a: int = LANCZOS_A):
        if ratio <= 0:
            raise ValueError(f"Resample ratio must be positive, got {ratio}")
        self.ratio = float(ratio)
        self.a = a
        self._pending = np.zeros(0)
        self._cursor = 0.0

    @property
    def buffered(self) -> int:
        """Number of input samples carried over to the next block."""
        return len(self._pending)

    def _emit(self, buffer: np.ndarray, limit: float) -> np.ndarray:
        if self._cursor >= limit:
            return np.zeros(0)
        n_out = int(math.ceil((limit - self._cursor) / self.ratio))
        positions = self._cursor + np.arange(n_out) * self.ratio
        positions = positions[positions < limit]
        self._cursor += len(positions) * self.ratio
        return interpolate(buffer, positions, self.a)

    def process(self, block: np.ndarray) -> np.ndarray:
        block = np.asarray(block, dtype=np.float64)
        if self.ratio == 1.0:
            return block.copy()

        buffer = np.concatenate([self._pending, block])
        # Only positions with a full `a` samples of look-ahead are final
        out = self._emit(buffer, len(buffer) - self.a)

        # Keep a - 1 samples of history behind the cursor for the left taps
        drop = max(0, int(math.floor(self._cursor)) - (self.a - 1))
        drop = min(drop, len(buffer))
        self._pending = buffer[drop:]
        self._cursor -= drop
        return out

    def flush(self) -> np.ndarray:
        if self.ratio == 1.0:
            return np.zeros(0)
        out = self._emit(self._pending, len(self._pending))
        self._pending = np.zeros(0)
        self._cursor = 0.0
        return out


def resample(samples: np.ndarray, ratio: float, a: int = LANCZOS_A) -> np.ndarray:
    """Resample a 1-D signal; output length is ceil(len / ratio)."""
    samples = np.asarray(samples, dtype=np.float64)
    if ratio == 1.0:
        return samples.copy()
    resampler = StreamingResampler(ratio, a)
    return np.concatenate([resampler.process(samples), resampler.flush()])


def resample_channels(
    samples: np.ndarray,
    ratio: float,
    a: int = LANCZOS_A,
    block_size: int = RESAMPLE_BLOCK_SIZE,
) -> np.ndarray:
    """Resample a (channels, n) array block-wise, one resampler per channel."""
    samples = np.asarray(samples, dtype=np.float64)
    if ratio == 1.0:
        return samples.copy()

    channels = []
    for channel in samples:
        resampler = StreamingResampler(ratio, a)
        parts = [
            resampler.process(channel[i:i + block_size])
            for i in range(0, len(channel), block_size)
        ]
        parts.append(resampler.flush())
        channels.append(np.concatenate(parts))

    if not channels:
        return np.zeros((0, 0))
    return np.vstack(channels)
