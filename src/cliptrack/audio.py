"""Audio assembly: one continuous audio track from the main-track clips.

Each main-track clip contributes one audio segment, in start_time order.
One segment is copied straight to the canonical path; several are joined
with ffmpeg's concat demuxer, which plays them back in list-file order.
Overlay clips contribute no audio.
"""

import logging
import shutil
from pathlib import Path

from .errors import MissingAudioError, Stage
from .preprocess import extract_audio, track_ordinals
from .settings import ExportSettings
from .timeline import ValidatedTimeline
from .tool import FFmpegRunner
from .workspace import Workspace

logger = logging.getLogger(__name__)

AUDIO_FILENAME = "audio.m4a"
CONCAT_LIST_FILENAME = "audio-concat.txt"


def concat_list_line(path: Path) -> str:
    """One concat demuxer entry: file '<absolute path>'.

    Single quotes inside the path are closed, escaped and reopened.
    """
    escaped = str(Path(path).resolve()).replace("'", "'\\''")
    return f"file '{escaped}'"


def write_concat_list(paths: list[Path], list_path: Path) -> Path:
    """Write a concat demuxer list file, one line per segment, in order."""
    lines = [concat_list_line(p) for p in paths]
    list_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return list_path


def concat_args(list_path: Path, output: Path) -> list[str]:
    return [
        "-f", "concat",
        "-safe", "0",
        "-i", str(list_path),
        "-c", "copy",
        "-y",
        str(output),
    ]


def assemble_audio(
    runner: FFmpegRunner,
    validated: ValidatedTimeline,
    workspace: Workspace,
    settings: ExportSettings,
) -> Path:
    """Extract and join the main-track audio into workspace/audio.m4a.

    Returns:
        Path of the assembled audio asset.

    Raises:
        MissingAudioError: No main-track clip produced an audio segment.
        ToolInvocationError, ToolExecutionError: From ffmpeg.
    """
    clips = validated.main_clips
    segments = []
    for clip, ordinal in zip(clips, track_ordinals(clips)):
        path = extract_audio(runner, clip, validated.timeline, workspace, ordinal, settings)
        if path is not None:
            segments.append(path)

    if not segments:
        raise MissingAudioError("no audio track available", stage=Stage.AUDIO_ASSEMBLING.value)

    output = workspace.file(AUDIO_FILENAME)
    if len(segments) == 1:
        shutil.copyfile(segments[0], output)
        logger.debug("Single audio segment copied to %s", output)
        return output

    list_path = write_concat_list(segments, workspace.file(CONCAT_LIST_FILENAME))
    logger.debug("Concatenating %d audio segments", len(segments))
    runner.run(concat_args(list_path, output), stage=Stage.AUDIO_ASSEMBLING.value)
    return output
