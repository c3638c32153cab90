"""Shared test fixtures for cliptrack tests."""

import subprocess
from pathlib import Path

import pytest
import imageio_ffmpeg

from cliptrack.errors import ToolExecutionError

_FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()


def _make_video(out: Path, color: str, duration: float, size: str = "320x240") -> Path:
    subprocess.run(
        [
            _FFMPEG, "-y",
            "-f", "lavfi", "-i", f"color=c={color}:s={size}:d={duration}:r=10",
            "-f", "lavfi", "-i", "sine=frequency=440:sample_rate=44100",
            "-shortest",
            "-c:v", "libx264", "-crf", "28", "-pix_fmt", "yuv420p",
            "-c:a", "aac", "-b:a", "32k",
            str(out),
        ],
        check=True,
        capture_output=True,
    )
    return out


@pytest.fixture
def source_video(tmp_path):
    """A 5-second test video (320x240, 10fps) with audio."""
    return _make_video(tmp_path / "source.mp4", "blue", 5)


@pytest.fixture
def overlay_video(tmp_path):
    """A 3-second test video (160x120, 10fps) with audio, used on overlay tracks."""
    return _make_video(tmp_path / "overlay.mp4", "red", 3, size="160x120")


class FakeRunner:
    """Stands in for FFmpegRunner: records argument vectors, writes outputs.

    The last argument of every call is the output path; a small file is
    written there so later stages (copy, concat list) see real files.
    fail_when(args) -> bool makes matching calls raise ToolExecutionError.
    """

    def __init__(self, fail_when=None):
        self.calls: list[list[str]] = []
        self.stages: list[str | None] = []
        self.fail_when = fail_when
        self.cancelled = False

    def run(self, args, stage=None):
        self.calls.append(list(args))
        self.stages.append(stage)
        if self.fail_when is not None and self.fail_when(args):
            raise ToolExecutionError(
                "FFmpeg error: simulated failure", returncode=1,
                stderr="simulated failure", stage=stage,
            )
        Path(args[-1]).write_bytes(b"fake media")
        return ""

    def cancel(self):
        self.cancelled = True

    def reset(self):
        self.cancelled = False

    def outputs(self) -> list[str]:
        return [Path(c[-1]).name for c in self.calls]


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def failing_runner():
    """Factory: FakeRunner that fails on calls matching a predicate."""
    return lambda predicate: FakeRunner(fail_when=predicate)
