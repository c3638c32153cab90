"""Export settings shared by every pipeline stage."""

from dataclasses import dataclass

from .tool import DEFAULT_TIMEOUT

CANVAS_SIZE = (1920, 1080)
DEFAULT_FPS = 30


@dataclass
class ExportSettings:
    """Knobs for one export.

    Attributes:
        ffmpeg: ffmpeg binary; None resolves it through imageio_ffmpeg.
        canvas: Output resolution (w, h). Main-track clips fill it.
        fps: Output frame rate.
        codec: Video codec: "libx264" for CPU, "h264_nvenc" for GPU.
        audio_codec: Audio codec for extracted segments and the output.
        stream_copy: Trim with -c copy (fast, keyframe-aligned) instead
            of re-encoding (frame-accurate).
        workers: Parallel ffmpeg processes for overlay preprocessing.
        timeout: Seconds before a single ffmpeg call is killed.
        workspace_root: Parent of per-export scratch dirs (default: temp).
    """

    ffmpeg: str | None = None
    canvas: tuple[int, int] = CANVAS_SIZE
    fps: int = DEFAULT_FPS
    codec: str = "libx264"
    audio_codec: str = "aac"
    stream_copy: bool = False
    workers: int = 1
    timeout: float | None = DEFAULT_TIMEOUT
    workspace_root: str | None = None


def codec_params(codec: str) -> list[str]:
    """Return ffmpeg video encoding args for the given codec name."""
    if codec == "h264_nvenc":
        return ["-c:v", codec, "-cq", "20", "-pix_fmt", "yuv420p"]
    return ["-c:v", codec, "-crf", "20", "-pix_fmt", "yuv420p"]
