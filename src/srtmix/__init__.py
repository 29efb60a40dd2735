"""srtmix pipeline: place audio clips on an SRT timeline and mix them to MP3."""

import logging
from typing import Callable

from srtmix import audio
from srtmix.encoder import DEFAULT_BITRATE_KBPS, check_bitrate, encode_mp3
from srtmix.errors import InvalidTimelineError, MergeError, NoMatchingClipsError
from srtmix.matcher import match_clips
from srtmix.mixdown import render_clips
from srtmix.plan import build_plan, estimate_total_duration
from srtmix.progress import (
    MATCHING,
    PLANS_BUILT,
    RENDER_COMPLETE,
    RUNTIME_CHECK,
    ProgressTracker,
)
from srtmix.types import ClipSource, MergeConfig, MergeResult, ProcessReport, TimedEntry

logger = logging.getLogger(__name__)

MASTER_SAMPLE_RATE = 44100
MASTER_CHANNELS = 2


def _record_failure(error: MergeError, report: ProcessReport, progress: ProgressTracker) -> None:
    if str(error) not in report.errors:
        report.errors.append(str(error))
    if error.report is None:
        error.report = report
    progress.finish("Failed")


def process(
    entries: list[TimedEntry],
    clips: dict[int, ClipSource],
    config: MergeConfig | None = None,
    on_progress: Callable[[str, float], None] | None = None,
    sample_rate: int = MASTER_SAMPLE_RATE,
    channels: int = MASTER_CHANNELS,
    bitrate_kbps: int = DEFAULT_BITRATE_KBPS,
) -> MergeResult:
    """Run the merge pipeline.

    Args:
        entries: Parsed timeline entries.
        clips: Supplied clips keyed by numeric id.
        config: Processing options (defaults to MergeConfig()).
        on_progress: Optional callback(message, percent), percent non-decreasing.
        sample_rate: Master sample rate; clips are decoded to it.
        channels: Master channel count.
        bitrate_kbps: MP3 bitrate.

    Raises:
        MergeError: a subclass naming the condition that aborted the render.
            ``error.report`` holds the partially filled report. Any other
            exception is wrapped in a plain MergeError and chained as its cause.
    """
    config = config or MergeConfig()
    report = ProcessReport()
    progress = ProgressTracker(on_progress)

    try:
        if not entries:
            raise InvalidTimelineError("Timeline has no valid entries")

        # --- 1. Match ---
        progress.update("Matching audio files to timeline entries...", MATCHING)
        matches = match_clips(entries, clips)
        report.missing_files.extend(matches.missing)
        if not matches.matched:
            if clips:
                raise NoMatchingClipsError("No audio files match the timeline entries")
            raise NoMatchingClipsError("No audio files were provided")
        logger.info(f"Matched {len(matches.matched)}/{len(entries)} timeline entries")

        # --- 2. Check the encoding runtime before doing heavy work ---
        progress.update("Checking ffmpeg...", RUNTIME_CHECK)
        audio.check_ffmpeg()
        check_bitrate(bitrate_kbps)

        # --- 3. Plan ---
        plans = [build_plan(pair, config) for pair in matches.matched]
        report.total_duration = estimate_total_duration(plans)
        progress.update(f"Applying effects to {len(plans)} audio files...", PLANS_BUILT)

        # --- 4. Render ---
        master = render_clips(plans, clips, sample_rate, channels, report, progress)
        progress.update("Rendering final audio...", RENDER_COMPLETE)

        # --- 5. Encode ---
        data = encode_mp3(master, sample_rate, bitrate_kbps, on_progress=progress.encoding)
    except MergeError as e:
        _record_failure(e, report, progress)
        raise
    except Exception as e:
        logger.exception("Merge pipeline failed")
        error = MergeError(f"Unexpected error: {e}", report)
        _record_failure(error, report, progress)
        raise error from e

    progress.finish()
    return MergeResult(data=data, report=report)
