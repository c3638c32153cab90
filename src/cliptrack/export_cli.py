"""CLI for exports: a multi-track timeline manifest or a single trimmed clip.

Usage:
    # Timeline manifest
    cliptrack export --manifest timeline.yaml --output final.mp4

    # Single clip
    cliptrack export source.mp4 --start 10 --end 30 --output clip.mp4

    # Validate only (no rendering)
    cliptrack export --manifest timeline.yaml --validate
"""

import argparse
import logging
import sys
import time

from .errors import ExportError
from .pipeline import Stage, TimelineExporter
from .report import report
from .settings import ExportSettings
from .timeline import Clip, Timeline, validate
from .timeline_manifest import (
    apply_output_settings,
    load_timeline_manifest,
    validate_sources,
)


def _settings_from_args(parsed) -> ExportSettings:
    return ExportSettings(
        ffmpeg=parsed.ffmpeg,
        codec="h264_nvenc" if parsed.gpu else "libx264",
        stream_copy=parsed.copy,
        workers=parsed.workers,
        timeout=parsed.timeout,
        workspace_root=parsed.workspace_root,
    )


def _print_stage(stage: Stage) -> None:
    if stage not in (Stage.CLEANING_UP, Stage.DONE):
        print(f"  {stage.value}", flush=True)


def _validate_only(timeline: Timeline) -> None:
    """Validate a timeline and its sources, print a summary."""
    from .media import find_overruns

    validated = validate(timeline)
    validate_sources(timeline)

    print(
        f"Timeline valid: {len(validated.main_clips)} main clip(s), "
        f"{len(validated.overlay_clips)} overlay clip(s)"
    )
    for clip in validated.main_clips:
        print(f"  main  @{clip.start_time:.1f}s  [{clip.trim_start:.1f}s, {clip.trim_end:.1f}s)  {clip.source}")
    for clip in validated.overlay_clips:
        print(
            f"  t{clip.track_id}    @{clip.start_time:.1f}s  "
            f"[{clip.trim_start:.1f}s, {clip.trim_end:.1f}s)  {clip.source}"
        )
    for index, trim_end, duration in find_overruns(timeline):
        print(f"  WARN   clip {index}: trim_end {trim_end:.1f}s is past source end {duration:.1f}s")
    print("All paths verified.")


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Export a multi-track timeline (or one trimmed clip) to mp4.",
    )
    parser.add_argument(
        "source", nargs="?", default=None,
        help="Source video for a single-clip export",
    )
    parser.add_argument(
        "--start", type=float, default=None,
        help="Trim start in seconds (single-clip mode)",
    )
    parser.add_argument(
        "--end", type=float, default=None,
        help="Trim end in seconds (single-clip mode)",
    )
    parser.add_argument(
        "--manifest", default=None,
        help="Path to timeline YAML manifest",
    )
    parser.add_argument(
        "--output", default=None,
        help="Output mp4 path (required unless --validate)",
    )
    parser.add_argument(
        "--validate", action="store_true",
        help="Validate the timeline only — check trims and paths, don't render",
    )
    parser.add_argument(
        "--gpu", action="store_true",
        help="Use GPU encoding (h264_nvenc). Default is CPU (libx264).",
    )
    parser.add_argument(
        "--copy", action="store_true",
        help="Stream-copy when trimming (fast, keyframe-aligned) instead of re-encode",
    )
    parser.add_argument(
        "--workers", type=int, default=1,
        help="Parallel ffmpeg processes for overlay preprocessing (default: 1)",
    )
    parser.add_argument(
        "--timeout", type=float, default=3600.0,
        help="Seconds before a single ffmpeg call is killed (default: 3600)",
    )
    parser.add_argument(
        "--ffmpeg", default=None,
        help="ffmpeg binary (default: bundled/system ffmpeg)",
    )
    parser.add_argument(
        "--workspace-root", default=None,
        help="Directory for per-export scratch dirs (default: system temp)",
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Log pipeline details and ffmpeg command lines",
    )
    parsed = parser.parse_args(args)

    if parsed.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    is_single = parsed.source is not None or parsed.start is not None or parsed.end is not None
    is_manifest = parsed.manifest is not None

    if is_single and is_manifest:
        parser.error("Cannot mix single-clip args (source/--start/--end) with --manifest")
    if not is_single and not is_manifest:
        parser.error("Specify either --manifest or a source with --start/--end")
    if is_single and (parsed.source is None or parsed.start is None or parsed.end is None):
        parser.error("Single-clip mode requires a source, --start and --end")
    if parsed.workers < 1:
        parser.error("--workers must be >= 1")

    settings = _settings_from_args(parsed)

    if is_manifest:
        config = load_timeline_manifest(parsed.manifest)
        apply_output_settings(config, settings)
        timeline = config["timeline"]
    else:
        timeline = Timeline(clips=[Clip(parsed.source, parsed.start, parsed.end)])

    if parsed.validate:
        try:
            _validate_only(timeline)
        except ExportError as e:
            print(e.message, file=sys.stderr)
            sys.exit(1)
        return

    if not parsed.output:
        parser.error("--output is required (unless using --validate)")

    validate_sources(timeline)

    print(f"Exporting {len(timeline.clips)} clip(s) to {parsed.output}")
    t0 = time.monotonic()
    exporter = TimelineExporter(settings, on_stage=_print_stage)
    result = exporter.export(timeline, parsed.output)
    elapsed = time.monotonic() - t0

    for warning in result.warnings:
        print(f"  WARN   {warning}", file=sys.stderr)

    message = report(result)
    if not result.ok:
        print(message, file=sys.stderr)
        sys.exit(1)
    print(f"\n{message} ({elapsed:.1f}s)")


if __name__ == "__main__":
    main()
