"""Source media probing via moviepy.

imageio_ffmpeg bundles ffmpeg but not ffprobe, so durations come from
moviepy's reader instead.
"""

from pathlib import Path

from moviepy import VideoFileClip

from .timeline import Timeline


def probe_duration(path: str | Path) -> float:
    """Return the duration of a media file in seconds."""
    with VideoFileClip(str(path)) as clip:
        return clip.duration


def find_overruns(timeline: Timeline) -> list[tuple[int, float, float]]:
    """Clips whose trim_end runs past the end of their source.

    Returns:
        (clip index, trim_end, source duration) per offending clip.
        ffmpeg simply stops at the end of the source, so these are
        reported, not rejected.
    """
    durations: dict[str, float] = {}
    overruns = []
    for i, clip in enumerate(timeline.clips):
        if clip.source not in durations:
            durations[clip.source] = probe_duration(clip.source)
        duration = durations[clip.source]
        # Containers round durations; ignore sub-frame differences.
        if clip.trim_end > duration + 0.05:
            overruns.append((i, clip.trim_end, duration))
    return overruns
