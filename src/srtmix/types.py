"""Core data types for srtmix."""

import enum
from dataclasses import asdict, dataclass, field

import numpy as np


class DurationMode(str, enum.Enum):
    """How a clip's length relates to its timeline entry."""
    KEEP = "keep"
    TRUNCATE = "truncate"


@dataclass(frozen=True)
class TimedEntry:
    """One timed span parsed from the timeline."""
    id: int
    start: float     # seconds
    end: float       # seconds
    text: str

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass
class ClipSource:
    """A supplied audio clip, decoded on first use."""
    id: int
    name: str
    raw_bytes: bytes = field(repr=False)
    samples: np.ndarray | None = field(default=None, repr=False)  # (channels, n)
    sample_rate: int | None = None

    def release(self) -> None:
        """Drop decoded samples so the clip is not retained after a render."""
        self.samples = None
        self.sample_rate = None


@dataclass(frozen=True)
class MergeConfig:
    """Per-render processing options."""
    pitch_shift: int = 2              # semitones
    playback_rate: float = 1.2
    duration_mode: DurationMode = DurationMode.KEEP
    sound_optimization: bool = True

    def __post_init__(self):
        if isinstance(self.pitch_shift, bool) or not isinstance(self.pitch_shift, int):
            raise ValueError(f"pitch_shift must be an integer, got {self.pitch_shift!r}")
        if not -12 <= self.pitch_shift <= 12:
            raise ValueError(f"pitch_shift must be in [-12, 12], got {self.pitch_shift}")
        if not 0.5 <= self.playback_rate <= 2.0:
            raise ValueError(f"playback_rate must be in [0.5, 2.0], got {self.playback_rate}")
        # Accept plain strings ("keep"/"truncate") from callers
        object.__setattr__(self, "duration_mode", DurationMode(self.duration_mode))


@dataclass
class MergedTrackInfo:
    """Report row for one clip that made it into the mix."""
    source_id: int
    file_name: str
    start_time: float
    original_duration: float
    scheduled_duration: float    # estimate: entry duration / playback rate
    rendered_duration: float = 0.0


@dataclass
class ProcessReport:
    """Outcome of a render, filled in as the pipeline runs."""
    merged_tracks: list[MergedTrackInfo] = field(default_factory=list)
    missing_files: list[TimedEntry] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    total_duration: float = 0.0     # estimated, used for progress
    output_format: str = "mp3"
    rendered_duration: float = 0.0  # actual master buffer length

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MergeResult:
    """Output of the srtmix pipeline."""
    data: bytes
    report: ProcessReport
