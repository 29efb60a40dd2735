"""CLI entrypoint for srtmix: merge and plan subcommands."""

import argparse
import json
import logging
import sys
from pathlib import Path

from srtmix.errors import MergeError
from srtmix.types import DurationMode, MergeConfig


def _add_shared_args(parser: argparse.ArgumentParser) -> None:
    """Add arguments shared between merge and plan subcommands."""
    parser.add_argument("timeline", type=Path,
                        help="SRT file describing where each clip goes")
    parser.add_argument("clips", nargs="+", type=Path,
                        help="Audio files or directories; names must start with the entry id")
    parser.add_argument("--pitch-shift", type=int, default=2,
                        help="Pitch shift in semitones, -12 to 12 (default: 2)")
    parser.add_argument("--playback-rate", type=float, default=1.2,
                        help="Tempo factor, 0.5 to 2.0 (default: 1.2)")
    parser.add_argument("--duration-mode", default=DurationMode.KEEP.value,
                        choices=[m.value for m in DurationMode],
                        help="keep full clips or truncate them to their entry (default: keep)")
    parser.add_argument("--sound-optimization", action=argparse.BooleanOptionalAction, default=True,
                        help="Trim leading/trailing silence from clips (default: enabled)")
    parser.add_argument("-v", "--verbose", action="store_true", default=False,
                        help="Show debug logging")


def _add_merge_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-o", "--output", type=Path, default=None,
                        help="Output MP3 path (default: <timeline>_merged.mp3)")
    parser.add_argument("--report", type=Path, default=None,
                        help="Write the processing report as JSON to this path")
    parser.add_argument("--bitrate", type=int, default=192,
                        help="MP3 bitrate in kbps (default: 192)")
    parser.add_argument("--in-process", action="store_true", default=False,
                        help="Render in this process instead of a worker process")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments with subcommands."""
    parser = argparse.ArgumentParser(
        prog="srtmix",
        description="Mix numbered audio clips onto an SRT timeline",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    merge_parser = subparsers.add_parser(
        "merge",
        help="Render the mixed MP3",
        description="Place each clip at its timeline entry, apply effects and encode one MP3",
    )
    _add_shared_args(merge_parser)
    _add_merge_args(merge_parser)

    plan_parser = subparsers.add_parser(
        "plan",
        help="Show matches and transform stages without rendering",
        description="Match clips to timeline entries and print each clip's transform plan",
    )
    _add_shared_args(plan_parser)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    return args


def _config_from_args(args: argparse.Namespace) -> MergeConfig:
    try:
        return MergeConfig(
            pitch_shift=args.pitch_shift,
            playback_rate=args.playback_rate,
            duration_mode=DurationMode(args.duration_mode),
            sound_optimization=args.sound_optimization,
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


def _load_inputs(args: argparse.Namespace):
    from srtmix.matcher import load_clip_sources
    from srtmix.timeline import load_timeline

    if not args.timeline.exists():
        print(f"Error: file not found: {args.timeline}", file=sys.stderr)
        sys.exit(1)
    for p in args.clips:
        if not p.exists():
            print(f"Error: file not found: {p}", file=sys.stderr)
            sys.exit(1)

    entries = load_timeline(args.timeline)
    clips = load_clip_sources(args.clips)
    return entries, clips


def _print_progress(message: str, percent: float) -> None:
    print(f"[{percent:5.1f}%] {message}", file=sys.stderr)


def _write_report(path: Path, report) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))


def _run_merge(args: argparse.Namespace) -> None:
    """Run the merge pipeline."""
    from srtmix import process
    from srtmix.worker import MergeRequest, run_merge_job

    config = _config_from_args(args)
    output = args.output or args.timeline.with_name(f"{args.timeline.stem}_merged.mp3")

    try:
        entries, clips = _load_inputs(args)
        if args.in_process:
            result = process(entries, clips, config=config,
                             on_progress=_print_progress, bitrate_kbps=args.bitrate)
        else:
            request = MergeRequest(entries=entries, clips=clips, config=config,
                                   bitrate_kbps=args.bitrate)
            result = run_merge_job(request, on_progress=_print_progress)
    except MergeError as e:
        if args.report and e.report is not None:
            _write_report(args.report, e.report)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(result.data)
    if args.report:
        _write_report(args.report, result.report)

    report = result.report
    print(f"Merged {len(report.merged_tracks)} clip(s) into {output}")
    print(f"Duration: {report.rendered_duration:.2f}s (estimated {report.total_duration:.2f}s)")
    if report.missing_files:
        ids = ", ".join(str(e.id) for e in report.missing_files)
        print(f"Missing clips for entries: {ids}")
    for error in report.errors:
        print(f"Warning: {error}")


def _run_plan(args: argparse.Namespace) -> None:
    """Print matches and transform plans."""
    from srtmix.errors import InvalidTimelineError
    from srtmix.matcher import match_clips
    from srtmix.plan import build_plan, estimate_total_duration
    from srtmix.timeline import format_timestamp

    config = _config_from_args(args)
    try:
        entries, clips = _load_inputs(args)
    except InvalidTimelineError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    matches = match_clips(entries, clips)
    plans = [build_plan(pair, config) for pair in matches.matched]

    for plan in plans:
        print(f"{plan.clip_id:>5}  {format_timestamp(plan.entry.start)}  {plan.file_name}")
        for stage in plan.stages:
            print(f"         {stage}")
    print(f"Matched {len(plans)}/{len(entries)} entries, "
          f"estimated duration {estimate_total_duration(plans):.2f}s")
    for entry in matches.missing:
        print(f"Missing: {entry.id} at {format_timestamp(entry.start)} ({entry.text})")


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint."""
    args = parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=level, format="%(name)s %(levelname)s: %(message)s")

    if args.command == "merge":
        _run_merge(args)
    elif args.command == "plan":
        _run_plan(args)


if __name__ == "__main__":
    main()
