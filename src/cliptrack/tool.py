"""ffmpeg invocation, one blocking subprocess per pipeline step.

FFmpegRunner wraps subprocess.Popen so that the three ways a step can go
wrong map onto distinct error kinds:

  - the binary cannot be started          -> ToolInvocationError
  - it exits non-zero (stderr kept as-is) -> ToolExecutionError
  - it outlives the timeout               -> ToolTimeoutError

cancel() may be called from another thread; it kills the in-flight
process and the blocked run() raises CancelledExportError.
"""

import logging
import shlex
import subprocess
import threading

import imageio_ffmpeg

from .errors import (
    CancelledExportError,
    ToolExecutionError,
    ToolInvocationError,
    ToolTimeoutError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 3600.0


def default_ffmpeg() -> str:
    """Locate ffmpeg via imageio_ffmpeg (honours IMAGEIO_FFMPEG_EXE)."""
    try:
        return imageio_ffmpeg.get_ffmpeg_exe()
    except RuntimeError:
        # Let the first invocation report it as a ToolInvocationError.
        return "ffmpeg"


class FFmpegRunner:
    """Run ffmpeg with an explicit argument vector and interpret the result."""

    def __init__(self, binary: str | None = None, timeout: float | None = DEFAULT_TIMEOUT):
        self.binary = binary or default_ffmpeg()
        self.timeout = timeout
        self._lock = threading.Lock()
        self._process: subprocess.Popen | None = None
        self._cancelled = False

    def run(self, args: list[str], stage: str | None = None) -> str:
        """Run ffmpeg with args, return its stdout.

        Raises:
            CancelledExportError: cancel() was called before or during the run.
            ToolInvocationError: Binary missing or not executable.
            ToolTimeoutError: No exit within self.timeout seconds.
            ToolExecutionError: Non-zero exit.
        """
        cmd = [self.binary, *args]
        logger.debug("ffmpeg [%s]: %s", stage or "-", shlex.join(cmd))

        with self._lock:
            if self._cancelled:
                raise CancelledExportError("Export cancelled", stage=stage)
            try:
                proc = subprocess.Popen(
                    cmd,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                    errors="replace",
                )
            except OSError as e:
                raise ToolInvocationError(
                    "Failed to execute FFmpeg. Make sure FFmpeg is installed "
                    f"and in your PATH. Error: {e}",
                    stage=stage,
                ) from e
            self._process = proc

        try:
            stdout, stderr = proc.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.communicate()
            raise ToolTimeoutError(
                f"FFmpeg timed out after {self.timeout}s",
                returncode=proc.returncode,
                stage=stage,
            ) from None
        except BaseException:
            # KeyboardInterrupt and friends: never leave ffmpeg running.
            proc.kill()
            proc.wait()
            raise
        finally:
            with self._lock:
                self._process = None

        if self._cancelled:
            raise CancelledExportError("Export cancelled", stage=stage)
        if proc.returncode != 0:
            raise ToolExecutionError(
                f"FFmpeg error: {stderr}",
                returncode=proc.returncode,
                stderr=stderr,
                stage=stage,
            )
        return stdout

    def cancel(self) -> None:
        """Kill the in-flight process, if any, and refuse further runs."""
        with self._lock:
            self._cancelled = True
            if self._process is not None and self._process.poll() is None:
                logger.info("Cancelling ffmpeg process %d", self._process.pid)
                self._process.kill()

    def reset(self) -> None:
        """Clear a previous cancel() so the runner accepts runs again."""
        with self._lock:
            self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled


def check_ffmpeg(binary: str | None = None) -> str:
    """Probe ffmpeg with -version and return the first line of its output.

    Raises:
        ToolInvocationError: ffmpeg not found.
        ToolExecutionError: ffmpeg found but exited non-zero.
    """
    binary = binary or default_ffmpeg()
    try:
        result = subprocess.run(
            [binary, "-version"], capture_output=True, text=True, timeout=30,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise ToolInvocationError(
            "FFmpeg not found. Please install FFmpeg and add it to your PATH."
        ) from e
    if result.returncode != 0:
        raise ToolExecutionError(
            "FFmpeg found but returned an error",
            returncode=result.returncode,
            stderr=result.stderr,
        )
    lines = result.stdout.splitlines()
    return lines[0] if lines else "Unknown version"
