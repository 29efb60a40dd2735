"""Build per-clip transform plans.

A plan is an ordered tuple of stage records. Building plans as data keeps
stage order and parameters inspectable before any audio is touched; the
render engine in ``srtmix.mixdown`` executes them.
"""

from dataclasses import dataclass

from srtmix.matcher import MatchedPair
from srtmix.types import DurationMode, MergeConfig, TimedEntry

# Silence detection reference values
SILENCE_THRESHOLD_DB = -50.0
MIN_SILENCE_MS = 100.0


@dataclass(frozen=True)
class SilenceTrim:
    """Remove leading and trailing silence."""
    threshold_db: float = SILENCE_THRESHOLD_DB
    min_silence_ms: float = MIN_SILENCE_MS


@dataclass(frozen=True)
class Resample:
    """Read the signal at ``factor`` input samples per output sample.

    Changes pitch and duration together (factor > 1 = higher and shorter).
    """
    factor: float


@dataclass(frozen=True)
class TempoCorrect:
    """Scale duration by 1/rate without changing pitch."""
    rate: float


@dataclass(frozen=True)
class DurationTrim:
    """Keep at most ``seconds`` from the clip start."""
    seconds: float


@dataclass(frozen=True)
class Place:
    """Offset of the clip on the master timeline, in seconds."""
    offset: float


Stage = SilenceTrim | Resample | TempoCorrect | DurationTrim | Place

# (stage type, required)
_STAGE_ORDER = (
    (SilenceTrim, False),
    (Resample, True),
    (TempoCorrect, True),
    (DurationTrim, False),
    (Place, True),
)


@dataclass(frozen=True)
class TransformPlan:
    """Ordered stages for one matched clip."""
    entry: TimedEntry
    clip_id: int
    file_name: str
    stages: tuple
    estimated_duration: float    # entry duration / playback rate


def pitch_factor(semitones: int | float) -> float:
    """Frequency ratio for a shift of ``semitones``; exactly 1.0 at 0."""
    return 2.0 ** (semitones / 12)


def validate_plan(stages: tuple) -> None:
    """Raise ValueError unless stages follow the fixed pipeline order."""
    position = 0
    for stage in stages:
        while position < len(_STAGE_ORDER) and not isinstance(stage, _STAGE_ORDER[position][0]):
            stage_type, required = _STAGE_ORDER[position]
            if required:
                raise ValueError(f"Plan is missing a {stage_type.__name__} stage before {stage!r}")
            position += 1
        if position == len(_STAGE_ORDER):
            raise ValueError(f"Stage {stage!r} is out of order or repeated")
        position += 1

    for stage_type, required in _STAGE_ORDER[position:]:
        if required:
            raise ValueError(f"Plan is missing a {stage_type.__name__} stage")


def build_plan(pair: MatchedPair, config: MergeConfig) -> TransformPlan:
    """Derive the transform stages for one matched entry."""
    entry = pair.entry
    stages: list[Stage] = []

    if config.sound_optimization:
        stages.append(SilenceTrim())

    stages.append(Resample(factor=pitch_factor(config.pitch_shift)))
    stages.append(TempoCorrect(rate=config.playback_rate))

    if config.duration_mode == DurationMode.TRUNCATE and entry.duration > 0:
        stages.append(DurationTrim(seconds=entry.duration))

    stages.append(Place(offset=entry.start))

    plan_stages = tuple(stages)
    validate_plan(plan_stages)

    return TransformPlan(
        entry=entry,
        clip_id=pair.clip.id,
        file_name=pair.clip.name,
        stages=plan_stages,
        estimated_duration=entry.duration / config.playback_rate,
    )


def estimate_total_duration(plans: list[TransformPlan]) -> float:
    """Approximate timeline length from entry timing, for progress and reports."""
    return max((p.entry.start + p.estimated_duration for p in plans), default=0.0)
