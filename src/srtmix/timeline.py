"""Parse SRT-formatted timelines into timed entries."""

import logging
import re
from pathlib import Path

from srtmix.errors import InvalidTimelineError
from srtmix.types import TimedEntry

logger = logging.getLogger(__name__)

_TIMING_RE = re.compile(
    r"(\d{2}:\d{2}:\d{2},\d{3})\s*-->\s*(\d{2}:\d{2}:\d{2},\d{3})"
)
_BLOCK_SEP_RE = re.compile(r"\n[ \t]*\n")


def srt_time_to_seconds(time: str) -> float:
    """Convert 'HH:MM:SS,mmm' to fractional seconds."""
    parts = re.split(r"[:,]", time.strip())
    if len(parts) != 4:
        raise ValueError(f"Invalid SRT timestamp: {time!r}")
    hours, minutes, seconds, millis = (int(p) for p in parts)
    return hours * 3600 + minutes * 60 + seconds + millis / 1000


def format_timestamp(seconds: float) -> str:
    """Format seconds as 'HH:MM:SS,mmm', rounded to the millisecond."""
    if seconds < 0:
        raise ValueError(f"Timestamp cannot be negative: {seconds}")
    total_ms = int(round(seconds * 1000))
    hours, rem = divmod(total_ms, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    secs, millis = divmod(rem, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def parse_srt(text: str) -> list[TimedEntry]:
    """Parse SRT text into entries, skipping malformed blocks.

    A block needs an integer id line, a timing line and at least one line of
    text. Blocks that fail any of these, or whose end is not after their
    start, are logged and dropped; this function does not raise on bad input.
    """
    entries = []
    normalized = text.replace("\r", "").lstrip("\ufeff").strip()
    if not normalized:
        return entries

    for block in _BLOCK_SEP_RE.split(normalized):
        lines = [line.strip() for line in block.strip().split("\n")]
        if len(lines) < 2:
            logger.warning(f"Skipping SRT block with fewer than 2 lines: {block!r}")
            continue

        try:
            entry_id = int(lines[0])
        except ValueError:
            logger.warning(f"Skipping SRT block with non-integer id: {lines[0]!r}")
            continue

        match = _TIMING_RE.search(lines[1])
        if not match:
            logger.warning(f"Skipping SRT block {entry_id}: bad timing line {lines[1]!r}")
            continue

        start = srt_time_to_seconds(match.group(1))
        end = srt_time_to_seconds(match.group(2))
        body = " ".join(lines[2:]).strip()

        if not body:
            logger.debug(f"Skipping SRT block {entry_id}: no text")
            continue
        if end <= start:
            logger.warning(f"Skipping SRT block {entry_id}: end {end:.3f}s is not after start {start:.3f}s")
            continue

        entries.append(TimedEntry(id=entry_id, start=start, end=end, text=body))

    return entries


def parse_timeline(text: str) -> list[TimedEntry]:
    """Parse SRT text, raising InvalidTimelineError if nothing usable is found.

    Empty input and input that parses to zero entries are reported with
    different messages.
    """
    if not text.strip():
        raise InvalidTimelineError("Timeline is empty")
    entries = parse_srt(text)
    if not entries:
        raise InvalidTimelineError("Timeline has no valid entries")
    logger.info(f"Parsed {len(entries)} timeline entries")
    return entries


def load_timeline(path: Path) -> list[TimedEntry]:
    """Read an SRT file and parse it with parse_timeline."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    return parse_timeline(path.read_text(encoding="utf-8-sig", errors="replace"))
