"""Error kinds raised by the export pipeline.

Every fatal error is an ExportError carrying an ErrorKind, so callers can
tell "rejected before any work" apart from "failed mid-pipeline" without
parsing messages. CleanupWarning is the one non-fatal kind: it is logged
and collected on the result, never raised.
"""

from enum import Enum


class ErrorKind(Enum):
    VALIDATION = "validation"
    WORKSPACE = "workspace"
    TOOL_INVOCATION = "tool_invocation"
    TOOL_EXECUTION = "tool_execution"
    TOOL_TIMEOUT = "tool_timeout"
    CANCELLED = "cancelled"
    MISSING_AUDIO = "missing_audio"


class Stage(Enum):
    """Export pipeline stages; ExportError.stage holds one of their values."""

    VALIDATING = "validating"
    PREPROCESSING = "preprocessing"
    AUDIO_ASSEMBLING = "audio_assembling"
    GRAPH_BUILDING = "graph_building"
    COMPOSING = "composing"
    CLEANING_UP = "cleaning_up"
    DONE = "done"


class ExportError(Exception):
    """Base class for every fatal export failure."""

    kind: ErrorKind

    def __init__(self, message: str, stage: str | None = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        return self.message


class ValidationError(ExportError, ValueError):
    """Malformed timeline, raised before any filesystem or tool work."""

    kind = ErrorKind.VALIDATION


class WorkspaceError(ExportError):
    """The scratch directory could not be created."""

    kind = ErrorKind.WORKSPACE


class ToolInvocationError(ExportError):
    """ffmpeg could not be started at all (missing or not executable)."""

    kind = ErrorKind.TOOL_INVOCATION


class ToolExecutionError(ExportError):
    """ffmpeg ran but exited non-zero. Its stderr is kept verbatim."""

    kind = ErrorKind.TOOL_EXECUTION

    def __init__(
        self,
        message: str,
        returncode: int | None = None,
        stderr: str = "",
        stage: str | None = None,
    ):
        super().__init__(message, stage=stage)
        self.returncode = returncode
        self.stderr = stderr


class ToolTimeoutError(ToolExecutionError):
    kind = ErrorKind.TOOL_TIMEOUT


class CancelledExportError(ExportError):
    kind = ErrorKind.CANCELLED


class MissingAudioError(ExportError):
    """No main-track clip yielded an audio segment."""

    kind = ErrorKind.MISSING_AUDIO


class CleanupWarning(UserWarning):
    """Scratch directory removal failed. Never escalated."""
