"""Timeline manifest loader: multi-track exports declared in YAML.

Follows the same ${var} path resolution as the other manifests.

Timeline manifest schema:
  paths:
    raw: "/data/recordings"
  output:                         # optional
    resolution: [1920, 1080]
    fps: 30
  global_trim:                    # optional; default [0, end of last clip)
    start: 0
    end: 12
  clips:
    - source: "${raw}/screen.mp4"
      track: 0                    # 0 = main track (default)
      start_time: 0               # placement on the output timeline
      trim_start: 1.5
      trim_end: 9.5
    - source: "${raw}/webcam.mp4"
      track: 1
      start_time: 2
      trim_start: 0
      trim_end: 4
      overlay:                    # optional, overlay tracks only
        position: [1260, 700]
        size: [640, 360]
        opacity: 0.8
        blend_mode: normal
"""

import math
from pathlib import Path

import yaml

from .common import parse_pair, resolve_path_vars
from .settings import ExportSettings
from .timeline import (
    DEFAULT_BLEND_MODE,
    DEFAULT_OVERLAY_OPACITY,
    DEFAULT_OVERLAY_POSITION,
    DEFAULT_OVERLAY_SIZE,
    Clip,
    OverlaySpec,
    Timeline,
)


def load_timeline_manifest(manifest_path: str | Path) -> dict:
    """Load and normalize a timeline manifest.

    Processing pipeline:
      1. Parse YAML.
      2. Resolve ${path} variables in clip sources.
      3. Parse each clip's required fields and optional overlay block.
      4. Parse the optional global trim and output settings.

    Only field presence and types are checked here. Timeline invariants
    (trim ranges, main track present) are checked by timeline.validate()
    when the export starts.

    Args:
        manifest_path: Path to the YAML timeline manifest.

    Returns:
        Dict with "timeline" (Timeline) and "output" (resolution, fps).

    Raises:
        ValueError: Missing/invalid fields.
    """
    with open(manifest_path) as f:
        raw = yaml.safe_load(f) or {}

    if "clips" not in raw:
        raise ValueError("Timeline manifest: missing required 'clips' field")
    if not isinstance(raw["clips"], list):
        raise ValueError("Timeline manifest: 'clips' must be a list")

    paths = raw.get("paths", {})

    clips = []
    for i, entry in enumerate(raw["clips"]):
        clips.append(_parse_clip(entry, i, paths))

    global_trim = raw.get("global_trim") or {}
    trim_start = _number(global_trim.get("start", 0.0), "global_trim.start")
    trim_end = global_trim.get("end")
    if trim_end is not None:
        trim_end = _number(trim_end, "global_trim.end")

    output = raw.get("output") or {}
    resolved_output = {}
    if "resolution" in output:
        resolved_output["resolution"] = parse_pair(
            output["resolution"], "output.resolution", cast=int,
        )
    if "fps" in output:
        fps = output["fps"]
        if not isinstance(fps, int) or fps <= 0:
            raise ValueError(f"Timeline manifest: output.fps must be a positive int, got {fps!r}")
        resolved_output["fps"] = fps

    timeline = Timeline(
        clips=clips,
        global_trim_start=trim_start,
        global_trim_end=trim_end,
    )
    return {"timeline": timeline, "output": resolved_output}


def _parse_clip(entry: dict, index: int, paths: dict) -> Clip:
    if not isinstance(entry, dict):
        raise ValueError(f"Clip {index}: expected a mapping, got {entry!r}")
    for key in ("source", "trim_start", "trim_end"):
        if key not in entry:
            raise ValueError(f"Clip {index}: missing required field '{key}'")

    track = entry.get("track", 0)
    if not isinstance(track, int):
        raise ValueError(f"Clip {index}: track must be an int, got {track!r}")

    overlay = None
    if "overlay" in entry:
        if track == 0:
            raise ValueError(f"Clip {index}: overlay settings are only valid on tracks > 0")
        overlay = _parse_overlay(entry["overlay"] or {}, index)

    return Clip(
        source=resolve_path_vars(str(entry["source"]), paths),
        trim_start=_number(entry["trim_start"], f"Clip {index} trim_start"),
        trim_end=_number(entry["trim_end"], f"Clip {index} trim_end"),
        track_id=track,
        start_time=_number(entry.get("start_time", 0.0), f"Clip {index} start_time"),
        overlay=overlay,
    )


def _parse_overlay(block: dict, index: int) -> OverlaySpec:
    position = block.get("position", DEFAULT_OVERLAY_POSITION)
    size = block.get("size", DEFAULT_OVERLAY_SIZE)
    return OverlaySpec(
        position=parse_pair(position, f"Clip {index} overlay.position", cast=int),
        size=parse_pair(size, f"Clip {index} overlay.size", cast=int),
        opacity=_number(block.get("opacity", DEFAULT_OVERLAY_OPACITY), f"Clip {index} overlay.opacity"),
        blend_mode=str(block.get("blend_mode", DEFAULT_BLEND_MODE)),
    )


def _number(value, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{field} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise ValueError(f"{field} must be finite, got {value!r}")
    return float(value)


def apply_output_settings(config: dict, settings: ExportSettings) -> ExportSettings:
    """Copy the manifest's output block onto settings (in place)."""
    output = config["output"]
    if "resolution" in output:
        settings.canvas = output["resolution"]
    if "fps" in output:
        settings.fps = output["fps"]
    return settings


def validate_sources(timeline: Timeline) -> None:
    """Check that every clip source exists on disk.

    Raises:
        FileNotFoundError: Lists all missing files.
    """
    missing = []
    for clip in timeline.clips:
        if not Path(clip.source).exists() and clip.source not in missing:
            missing.append(clip.source)

    if missing:
        msg = f"Missing {len(missing)} source file(s):\n"
        for p in missing:
            msg += f"  - {p}\n"
        raise FileNotFoundError(msg)
