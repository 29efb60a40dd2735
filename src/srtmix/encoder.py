"""Frame-by-frame MP3 encoding through an ffmpeg libmp3lame subprocess.

The encoder is a scoped resource: use it as a context manager so the
subprocess is terminated on success and on failure alike. Frames must be
submitted in order, each holding at most FRAME_SIZE samples per channel;
only the final frame may be shorter.
"""

import logging
import queue
import subprocess
import threading
from typing import Callable

import numpy as np

from srtmix import audio
from srtmix.analysis import float_to_int16
from srtmix.errors import EncoderInitError, EncoderUnavailableError, EncodingError

logger = logging.getLogger(__name__)

FRAME_SIZE = 1152  # MPEG-1 Layer III samples per frame
DEFAULT_BITRATE_KBPS = 192
MIN_BITRATE_KBPS = 8
MAX_BITRATE_KBPS = 320
FLUSH_TIMEOUT = 120  # seconds

_READ_CHUNK = 4096


def check_bitrate(bitrate_kbps: int) -> None:
    """Raise EncoderInitError unless the bitrate is one libmp3lame can produce."""
    if not MIN_BITRATE_KBPS <= bitrate_kbps <= MAX_BITRATE_KBPS:
        raise EncoderInitError(
            f"MP3 bitrate must be {MIN_BITRATE_KBPS}-{MAX_BITRATE_KBPS} kbps, got {bitrate_kbps}"
        )


def _has_mp3_encoder() -> bool:
    """Return True if the ffmpeg build lists libmp3lame."""
    result = subprocess.run(
        [audio.FFMPEG, "-hide_banner", "-encoders"],
        capture_output=True, text=True, timeout=30,
    )
    return result.returncode == 0 and "libmp3lame" in result.stdout


class Mp3Encoder:
    """Stateful MP3 encoder fed with (channels, <=FRAME_SIZE) float frames."""

    def __init__(self, channels: int, sample_rate: int, bitrate_kbps: int = DEFAULT_BITRATE_KBPS):
        if channels not in (1, 2):
            raise ValueError(f"MP3 supports 1 or 2 channels, got {channels}")
        check_bitrate(bitrate_kbps)
        self.channels = channels
        self.sample_rate = sample_rate
        self.bitrate_kbps = bitrate_kbps
        self._proc: subprocess.Popen | None = None
        self._chunks: queue.Queue = queue.Queue()
        self._stderr: list[bytes] = []
        self._readers: list[threading.Thread] = []
        self._finished = False
        self._saw_partial_frame = False

    def _command(self) -> list[str]:
        return [
            audio.FFMPEG, "-hide_banner", "-v", "error",
            "-f", "s16le", "-ar", str(self.sample_rate), "-ac", str(self.channels),
            "-i", "pipe:0",
            "-c:a", "libmp3lame", "-b:a", f"{self.bitrate_kbps}k",
            "-f", "mp3", "pipe:1",
        ]

    def _read_stdout(self, stream) -> None:
        for chunk in iter(lambda: stream.read1(_READ_CHUNK), b""):
            self._chunks.put(chunk)

    def _read_stderr(self, stream) -> None:
        for line in iter(stream.readline, b""):
            self._stderr.append(line)

    def open(self) -> "Mp3Encoder":
        try:
            if not _has_mp3_encoder():
                raise EncoderInitError(f"{audio.FFMPEG} was built without libmp3lame")
            self._proc = subprocess.Popen(
                self._command(),
                stdin=subprocess.PIPE, stdout=subprocess.PIPE, stderr=subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise EncoderUnavailableError(f"{audio.FFMPEG} not found: {e}") from e
        except (OSError, subprocess.SubprocessError) as e:
            raise EncoderInitError(f"Failed to start MP3 encoder: {e}") from e

        self._readers = [
            threading.Thread(target=self._read_stdout, args=(self._proc.stdout,), daemon=True),
            threading.Thread(target=self._read_stderr, args=(self._proc.stderr,), daemon=True),
        ]
        for t in self._readers:
            t.start()
        logger.debug(
            f"MP3 encoder started: {self.channels}ch {self.sample_rate}Hz {self.bitrate_kbps}kbps"
        )
        return self

    def _drain(self) -> bytes:
        parts = []
        while True:
            try:
                parts.append(self._chunks.get_nowait())
            except queue.Empty:
                return b"".join(parts)

    def _error_detail(self) -> str:
        text = b"".join(self._stderr).decode("utf-8", errors="replace").strip()
        return text.splitlines()[-1] if text else "no output"

    def encode_frame(self, frame: np.ndarray) -> bytes:
        """Submit one frame; return any MP3 bytes produced so far."""
        if self._proc is None:
            raise EncodingError("Encoder is not open")
        if self._finished:
            raise EncodingError("Encoder has already been flushed")

        frame = np.asarray(frame, dtype=np.float64)
        if frame.ndim == 1:
            frame = frame[np.newaxis, :]
        if frame.shape[0] != self.channels:
            raise EncodingError(f"Expected {self.channels} channels, got {frame.shape[0]}")
        n = frame.shape[1]
        if n == 0 or n > FRAME_SIZE:
            raise EncodingError(f"Frame must hold 1..{FRAME_SIZE} samples, got {n}")
        if self._saw_partial_frame:
            raise EncodingError("Only the final frame may be shorter than a full frame")
        if n < FRAME_SIZE:
            self._saw_partial_frame = True

        pcm = np.ascontiguousarray(float_to_int16(frame).T).astype("<i2").tobytes()
        try:
            self._proc.stdin.write(pcm)
        except (BrokenPipeError, OSError) as e:
            try:
                self._proc.wait(timeout=10)
            except subprocess.TimeoutExpired:
                pass  # the broken pipe is the error to report
            raise EncodingError(f"MP3 encoder stopped accepting frames: {self._error_detail()}") from e
        return self._drain()

    def flush(self) -> bytes:
        """Finish the stream and return the remaining MP3 bytes."""
        if self._proc is None:
            raise EncodingError("Encoder is not open")
        if self._finished:
            return b""
        self._finished = True

        try:
            self._proc.stdin.close()
        except (BrokenPipeError, OSError):
            pass
        try:
            returncode = self._proc.wait(timeout=FLUSH_TIMEOUT)
        except subprocess.TimeoutExpired as e:
            raise EncodingError(f"MP3 encoder did not finish within {FLUSH_TIMEOUT}s") from e
        for t in self._readers:
            t.join(timeout=10)
        if returncode != 0:
            raise EncodingError(f"MP3 encoder exited with status {returncode}: {self._error_detail()}")
        return self._drain()

    def close(self) -> None:
        """Terminate the encoder process if it is still running."""
        if self._proc is None:
            return
        if self._proc.poll() is None:
            self._proc.kill()
            self._proc.wait()
        for t in self._readers:
            t.join(timeout=5)
        for stream in (self._proc.stdin, self._proc.stdout, self._proc.stderr):
            if stream and not stream.closed:
                stream.close()
        self._proc = None

    def __enter__(self) -> "Mp3Encoder":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def encode_mp3(
    samples: np.ndarray,
    sample_rate: int,
    bitrate_kbps: int = DEFAULT_BITRATE_KBPS,
    on_progress: Callable[[float], None] | None = None,
) -> bytes:
    """Encode (channels, n) float samples to MP3 bytes, one frame at a time."""
    samples = np.asarray(samples, dtype=np.float64)
    if samples.ndim == 1:
        samples = samples[np.newaxis, :]
    n = samples.shape[1]
    if n == 0:
        raise EncodingError("Nothing to encode: buffer is empty")

    total_frames = -(-n // FRAME_SIZE)
    report_every = max(1, total_frames // 100)
    parts = []

    with Mp3Encoder(samples.shape[0], sample_rate, bitrate_kbps) as encoder:
        for index, start in enumerate(range(0, n, FRAME_SIZE)):
            parts.append(encoder.encode_frame(samples[:, start:start + FRAME_SIZE]))
            if on_progress and (index + 1) % report_every == 0:
                on_progress((index + 1) / total_frames)
        parts.append(encoder.flush())

    data = b"".join(parts)
    logger.info(f"Encoded {n / sample_rate:.2f}s to {len(data)} bytes of MP3")
    return data
