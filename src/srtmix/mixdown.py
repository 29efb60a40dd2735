"""Execute transform plans and mix the results onto one timeline."""

import logging

import numpy as np

from srtmix.analysis import peak_dbfs, trim_silence
from srtmix.audio import decode_clip, time_stretch
from srtmix.errors import AllClipsFailedError, ZeroDurationError
from srtmix.plan import DurationTrim, Place, Resample, SilenceTrim, TempoCorrect, TransformPlan
from srtmix.progress import TIMELINE_CREATED, ProgressTracker
from srtmix.resample import resample_channels
from srtmix.types import ClipSource, MergedTrackInfo, ProcessReport

logger = logging.getLogger(__name__)


def execute_plan(
    plan: TransformPlan,
    samples: np.ndarray,
    sample_rate: int,
) -> tuple[int, np.ndarray]:
    """Run a plan's stages over (channels, n) samples.

    Returns (offset in samples, processed samples).
    """
    offset = 0
    for stage in plan.stages:
        if isinstance(stage, SilenceTrim):
            samples = trim_silence(samples, sample_rate, stage.threshold_db, stage.min_silence_ms)
        elif isinstance(stage, Resample):
            samples = resample_channels(samples, stage.factor)
        elif isinstance(stage, TempoCorrect):
            samples = time_stretch(samples, sample_rate, stage.rate)
        elif isinstance(stage, DurationTrim):
            samples = samples[:, :int(round(stage.seconds * sample_rate))]
        elif isinstance(stage, Place):
            offset = int(round(stage.offset * sample_rate))
        else:
            raise TypeError(f"Unknown stage: {stage!r}")
    return offset, samples


def mixdown(placed: list[tuple[int, np.ndarray]], channels: int) -> np.ndarray:
    """Sum placed clips into one (channels, n) master buffer.

    The buffer ends where the last non-empty clip ends; empty clips do not
    extend it. Overlaps are summed as-is, with no limiting.
    """
    length = max(
        (offset + s.shape[1] for offset, s in placed if s.shape[1] > 0),
        default=0,
    )
    master = np.zeros((channels, length))
    for offset, samples in placed:
        if samples.shape[1] == 0:
            continue
        master[:, offset:offset + samples.shape[1]] += samples

    peak = peak_dbfs(master)
    if peak > 0:
        logger.warning(f"Mix peaks at +{peak:.1f} dBFS and will clip when encoded")
    return master


def _load_samples(clip: ClipSource, sample_rate: int, channels: int) -> np.ndarray:
    if clip.samples is None or clip.sample_rate != sample_rate or clip.samples.shape[0] != channels:
        clip.samples = decode_clip(clip.raw_bytes, sample_rate, channels)
        clip.sample_rate = sample_rate
    return clip.samples


def render_clips(
    plans: list[TransformPlan],
    clips: dict[int, ClipSource],
    sample_rate: int,
    channels: int,
    report: ProcessReport,
    progress: ProgressTracker | None = None,
) -> np.ndarray:
    """Process every planned clip and mix them into the master buffer.

    A clip that fails is logged, recorded in ``report.errors`` and left out
    of the mix; the rest carry on. Raises AllClipsFailedError if nothing
    rendered and ZeroDurationError if everything rendered to silence-length
    zero.
    """
    placed = []
    total = len(plans)

    for i, plan in enumerate(plans):
        clip = clips[plan.clip_id]
        try:
            samples = _load_samples(clip, sample_rate, channels)
            offset, processed = execute_plan(plan, samples, sample_rate)
        except Exception as e:
            logger.warning(f"Failed to process {plan.file_name}: {e}")
            report.errors.append(f"{plan.file_name}: {e}")
        else:
            placed.append((offset, processed))
            rendered = processed.shape[1] / sample_rate
            if rendered == 0:
                logger.warning(f"{plan.file_name} is empty after processing")
            report.merged_tracks.append(MergedTrackInfo(
                source_id=plan.clip_id,
                file_name=plan.file_name,
                start_time=plan.entry.start,
                original_duration=plan.entry.duration,
                scheduled_duration=plan.estimated_duration,
                rendered_duration=rendered,
            ))
        finally:
            clip.release()

        if progress:
            progress.clip_processed(i + 1, total)

    if not placed:
        message = "All matched audio files failed to process"
        report.errors.append(message)
        raise AllClipsFailedError(message, report)

    master = mixdown(placed, channels)
    if master.shape[1] == 0:
        message = "Processing produced zero-length audio; every clip was empty or silent"
        report.errors.append(message)
        raise ZeroDurationError(message, report)

    report.rendered_duration = master.shape[1] / sample_rate
    logger.info(
        f"Mixed {len(placed)}/{total} clips into {report.rendered_duration:.2f}s timeline"
    )
    if progress:
        progress.update(
            f"Creating {report.rendered_duration:.1f}s audio timeline...", TIMELINE_CREATED
        )
    return master
