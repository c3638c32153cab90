"""Clip preprocessing: trim each clip into a video-only or audio-only asset.

One ffmpeg invocation per (clip, stream). The clip's source window is
what survives the global trim, so a clip that lands entirely outside it
has duration 0 and is skipped rather than failing the export.

Asset names depend only on the clip's track and ordinal within it, so
rerunning an identical timeline produces identically named files.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

from .common import format_number
from .errors import Stage
from .settings import ExportSettings, codec_params
from .timeline import Clip, Timeline, ValidatedTimeline, source_window
from .tool import FFmpegRunner
from .workspace import Workspace

logger = logging.getLogger(__name__)

VIDEO_EXT = "mp4"
AUDIO_EXT = "m4a"


def trim_args(
    source: str,
    start: float,
    duration: float,
    output: str | Path,
    stream_args: list[str],
) -> list[str]:
    """Build a trim invocation: seek, input, duration, codecs, overwrite, output."""
    return [
        "-ss", format_number(start),
        "-i", source,
        "-t", format_number(duration),
        *stream_args,
        "-y",
        str(output),
    ]


def _video_stream_args(settings: ExportSettings) -> list[str]:
    if settings.stream_copy:
        return ["-an", "-c:v", "copy"]
    return ["-an", *codec_params(settings.codec)]


def _audio_stream_args(settings: ExportSettings) -> list[str]:
    if settings.stream_copy:
        return ["-vn", "-c:a", "copy"]
    return ["-vn", "-c:a", settings.audio_codec]


def extract_video(
    runner: FFmpegRunner,
    clip: Clip,
    timeline: Timeline,
    workspace: Workspace,
    ordinal: int,
    settings: ExportSettings,
) -> Path | None:
    """Trim a clip to a video-only asset. Returns None if nothing plays."""
    start, duration = source_window(clip, timeline)
    if duration <= 0:
        logger.debug("Skipping video of %s: outside the output window", clip.source)
        return None
    out = workspace.asset_path("video", clip.track_id, ordinal, VIDEO_EXT)
    runner.run(
        trim_args(clip.source, start, duration, out, _video_stream_args(settings)),
        stage=Stage.PREPROCESSING.value,
    )
    return out


def extract_audio(
    runner: FFmpegRunner,
    clip: Clip,
    timeline: Timeline,
    workspace: Workspace,
    ordinal: int,
    settings: ExportSettings,
) -> Path | None:
    """Trim a clip to an audio-only asset. Returns None if nothing plays."""
    start, duration = source_window(clip, timeline)
    if duration <= 0:
        logger.debug("Skipping audio of %s: outside the output window", clip.source)
        return None
    out = workspace.asset_path("audio", clip.track_id, ordinal, AUDIO_EXT)
    runner.run(
        trim_args(clip.source, start, duration, out, _audio_stream_args(settings)),
        stage=Stage.AUDIO_ASSEMBLING.value,
    )
    return out


def track_ordinals(clips) -> list[int]:
    """Position of each clip within its own track, in the given order."""
    seen: dict[int, int] = {}
    result = []
    for clip in clips:
        n = seen.get(clip.track_id, 0)
        result.append(n)
        seen[clip.track_id] = n + 1
    return result


def preprocess_main(
    runner: FFmpegRunner,
    validated: ValidatedTimeline,
    workspace: Workspace,
    settings: ExportSettings,
) -> list[tuple[Clip, Path]]:
    """Extract the video of every main-track clip, in start_time order.

    Clips with nothing inside the output window are left out.
    """
    return _extract_all(
        runner, validated.main_clips, validated.timeline, workspace, settings,
    )


def preprocess_overlays(
    runner: FFmpegRunner,
    validated: ValidatedTimeline,
    workspace: Workspace,
    settings: ExportSettings,
) -> list[tuple[Clip, Path]]:
    """Extract the video of every overlay clip, in compositing order."""
    return _extract_all(
        runner, validated.overlay_clips, validated.timeline, workspace, settings,
    )


def _extract_all(runner, clips, timeline, workspace, settings):
    """Run extract_video for each clip, optionally in parallel.

    Clips never share an output file, so they can run concurrently.
    The result keeps the input order either way. In parallel mode the
    first failure stops every job that has not started yet; calls
    already running finish, then the failure is re-raised.
    """
    work = list(zip(clips, track_ordinals(clips)))
    workers = min(settings.workers, len(work))

    if workers <= 1:
        results = [
            extract_video(runner, clip, timeline, workspace, n, settings)
            for clip, n in work
        ]
    else:
        failed = threading.Event()

        def _job(clip, n):
            if failed.is_set():
                return None
            try:
                return extract_video(runner, clip, timeline, workspace, n, settings)
            except BaseException:
                failed.set()
                raise

        results = [None] * len(work)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                pool.submit(_job, clip, n): i
                for i, (clip, n) in enumerate(work)
            }
            try:
                for future in as_completed(futures):
                    results[futures[future]] = future.result()
            except BaseException:
                pool.shutdown(wait=True, cancel_futures=True)
                raise

    return [(clip, path) for (clip, _), path in zip(work, results) if path is not None]
