"""Timeline model and validation.

A timeline is a flat list of clips. Track 0 is the main track and plays
the background video and all of the audio; tracks above 0 are overlays
drawn on top, each with a position, size, opacity and blend mode.

Time bookkeeping, for a clip placed at start_time with trim [s, e):

  effective output window  [start_time - g0, start_time - g0 + (e - s))
                           clipped to [0, g1 - g0]
  source window            the part of [s, e) that lands inside it

where [g0, g1) is the timeline's global trim window.
"""

import math
from dataclasses import dataclass, field

from .errors import ValidationError


VALID_BLEND_MODES = {"normal", "multiply", "screen", "overlay"}

DEFAULT_OVERLAY_POSITION = (0, 0)
DEFAULT_OVERLAY_SIZE = (640, 360)
DEFAULT_OVERLAY_OPACITY = 0.8
DEFAULT_BLEND_MODE = "normal"

MAIN_TRACK = 0


@dataclass(frozen=True)
class OverlaySpec:
    position: tuple[int, int] = DEFAULT_OVERLAY_POSITION
    size: tuple[int, int] = DEFAULT_OVERLAY_SIZE
    opacity: float = DEFAULT_OVERLAY_OPACITY
    blend_mode: str = DEFAULT_BLEND_MODE


@dataclass(frozen=True)
class Clip:
    source: str
    trim_start: float
    trim_end: float
    track_id: int = MAIN_TRACK
    start_time: float = 0.0
    overlay: OverlaySpec | None = None

    @property
    def duration(self) -> float:
        return self.trim_end - self.trim_start

    @property
    def is_main(self) -> bool:
        return self.track_id == MAIN_TRACK


@dataclass
class Timeline:
    clips: list[Clip] = field(default_factory=list)
    global_trim_start: float = 0.0
    global_trim_end: float | None = None

    @property
    def global_duration(self) -> float:
        return self.resolved_trim_end - self.global_trim_start

    @property
    def resolved_trim_end(self) -> float:
        """Global trim end, defaulting to the end of the last clip."""
        if self.global_trim_end is not None:
            return self.global_trim_end
        if not self.clips:
            return self.global_trim_start
        return max(c.start_time + c.duration for c in self.clips)


@dataclass(frozen=True)
class ValidatedTimeline:
    """A timeline that passed validate(), split by track.

    main_clips are in ascending start_time order (ties keep input order).
    overlay_clips are in ascending (track_id, start_time) order, each with
    a concrete OverlaySpec.
    """

    timeline: Timeline
    main_clips: tuple[Clip, ...]
    overlay_clips: tuple[Clip, ...]


# ── Validation ────────────────────────────────────────────────────


def validate(timeline: Timeline) -> ValidatedTimeline:
    """Check a timeline and partition its clips by track.

    Checks, in order (first violation wins):
      1. The clip list is non-empty.
      2. Every clip has finite times, 0 <= trim_start < trim_end, and
         overlay clips have a well-formed OverlaySpec.
      3. The global trim window is finite and well-formed.
      4. At least one clip is on the main track.

    Pure: touches neither the filesystem nor ffmpeg.

    Raises:
        ValidationError: On the first violation.
    """
    if not timeline.clips:
        raise ValidationError("Timeline has no clips")

    for i, clip in enumerate(timeline.clips):
        for name in ("trim_start", "trim_end", "start_time"):
            value = getattr(clip, name)
            if not math.isfinite(value):
                raise ValidationError(f"Clip {i} ({clip.source}): {name} must be finite, got {value}")
        if clip.trim_start < 0 or clip.trim_end <= clip.trim_start:
            raise ValidationError(
                f"Clip {i} ({clip.source}): invalid trim range "
                f"[{clip.trim_start}, {clip.trim_end})"
            )
        if clip.track_id < 0:
            raise ValidationError(f"Clip {i}: track must be >= 0, got {clip.track_id}")
        if clip.overlay is not None:
            _validate_overlay(clip.overlay, i)

    for name in ("global_trim_start", "global_trim_end"):
        value = getattr(timeline, name)
        if value is not None and not math.isfinite(value):
            raise ValidationError(f"Timeline {name} must be finite, got {value}")

    if timeline.resolved_trim_end <= timeline.global_trim_start:
        raise ValidationError(
            f"Invalid global trim range "
            f"[{timeline.global_trim_start}, {timeline.resolved_trim_end})"
        )

    indexed = list(enumerate(timeline.clips))
    main = [(i, c) for i, c in indexed if c.is_main]
    if not main:
        raise ValidationError("Timeline has no clip on the main track (track 0)")

    main.sort(key=lambda item: (item[1].start_time, item[0]))
    overlays = [(i, c) for i, c in indexed if not c.is_main]
    overlays.sort(key=lambda item: (item[1].track_id, item[1].start_time, item[0]))

    return ValidatedTimeline(
        timeline=timeline,
        main_clips=tuple(c for _, c in main),
        overlay_clips=tuple(_with_default_overlay(c) for _, c in overlays),
    )


def _validate_overlay(spec: OverlaySpec, index: int) -> None:
    if not 0.0 <= spec.opacity <= 1.0:
        raise ValidationError(
            f"Clip {index}: opacity must be within [0, 1], got {spec.opacity}"
        )
    w, h = spec.size
    if w <= 0 or h <= 0:
        raise ValidationError(f"Clip {index}: overlay size must be positive, got {spec.size}")
    if spec.blend_mode not in VALID_BLEND_MODES:
        raise ValidationError(
            f"Clip {index}: invalid blend_mode '{spec.blend_mode}'. "
            f"Valid: {sorted(VALID_BLEND_MODES)}"
        )


def _with_default_overlay(clip: Clip) -> Clip:
    if clip.overlay is not None:
        return clip
    return Clip(
        source=clip.source,
        trim_start=clip.trim_start,
        trim_end=clip.trim_end,
        track_id=clip.track_id,
        start_time=clip.start_time,
        overlay=OverlaySpec(),
    )


# ── Time windows ──────────────────────────────────────────────────


def effective_window(clip: Clip, timeline: Timeline) -> tuple[float, float] | None:
    """Return the clip's (start, end) on the output timeline, or None.

    None means the clip lies entirely outside the global trim window.
    """
    start = clip.start_time - timeline.global_trim_start
    end = start + clip.duration
    lo = max(start, 0.0)
    hi = min(end, timeline.global_duration)
    if hi <= lo:
        return None
    return lo, hi


def source_window(clip: Clip, timeline: Timeline) -> tuple[float, float]:
    """Return (source_start, duration) of the part of the clip that plays.

    duration is 0 when nothing of the clip survives the global trim.
    """
    window = effective_window(clip, timeline)
    if window is None:
        return clip.trim_start, 0.0
    lo, hi = window
    head_cut = lo - (clip.start_time - timeline.global_trim_start)
    return clip.trim_start + head_cut, hi - lo


def output_duration(validated: ValidatedTimeline) -> float:
    """Length of the rendered output: furthest end of any main clip window."""
    ends = [
        w[1] for w in
        (effective_window(c, validated.timeline) for c in validated.main_clips)
        if w is not None
    ]
    return max(ends, default=0.0)
