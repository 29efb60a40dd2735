"""Pair timeline entries with supplied clips by numeric id."""

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from srtmix.types import ClipSource, TimedEntry

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = (".mp3", ".wav", ".m4a", ".ogg", ".flac")

_LEADING_DIGITS_RE = re.compile(r"\d+")


@dataclass
class MatchedPair:
    """A timeline entry and the clip that belongs to it."""
    entry: TimedEntry
    clip: ClipSource


@dataclass
class MatchResult:
    """Entries split into matched pairs and entries without a clip."""
    matched: list[MatchedPair]
    missing: list[TimedEntry]


def clip_id_from_name(name: str) -> int | None:
    """Return the leading integer of a file name, e.g. '012_intro.wav' -> 12.

    Only the part before the first '.' is considered. Names that do not
    start with a digit yield None.
    """
    stem = Path(name).name.split(".")[0]
    match = _LEADING_DIGITS_RE.match(stem)
    if match is None:
        return None
    return int(match.group(0))


def _iter_audio_files(paths: list[Path]):
    for path in paths:
        path = Path(path)
        if path.is_dir():
            yield from sorted(p for p in path.iterdir() if p.is_file())
        elif path.exists():
            yield path
        else:
            raise FileNotFoundError(f"File not found: {path}")


def load_clip_sources(paths: list[Path]) -> dict[int, ClipSource]:
    """Read audio files (or directories of them) into clips keyed by id.

    Files with unsupported extensions or non-numeric names are skipped. If two
    files share an id, the later one wins.
    """
    clips: dict[int, ClipSource] = {}
    for path in _iter_audio_files(paths):
        if path.suffix.lower() not in AUDIO_EXTENSIONS:
            logger.debug(f"Ignoring non-audio file: {path.name}")
            continue
        clip_id = clip_id_from_name(path.name)
        if clip_id is None:
            logger.warning(f"Ignoring {path.name}: name does not start with a number")
            continue
        if clip_id in clips:
            logger.warning(
                f"Clip id {clip_id} appears more than once; "
                f"using {path.name} instead of {clips[clip_id].name}"
            )
        clips[clip_id] = ClipSource(id=clip_id, name=path.name, raw_bytes=path.read_bytes())

    logger.info(f"Loaded {len(clips)} audio clips")
    return clips


def match_clips(entries: list[TimedEntry], clips: dict[int, ClipSource]) -> MatchResult:
    """Pair each entry with the clip of the same id.

    Every entry ends up in exactly one of ``matched`` or ``missing``, both in
    timeline order.
    """
    matched = []
    missing = []
    for entry in entries:
        clip = clips.get(entry.id)
        if clip is None:
            missing.append(entry)
        else:
            matched.append(MatchedPair(entry=entry, clip=clip))

    if missing:
        logger.info(f"{len(missing)} timeline entries have no matching clip")
    return MatchResult(matched=matched, missing=missing)
