"""Per-export scratch directory.

Each export owns one directory, cliptrack-<export_id>, under the temp
location. The id is generated unless the caller supplies one, and the
directory is created with exist_ok=False: two exports can never share
one. Use it as a context manager so it is released on every exit path.
"""

import logging
import shutil
import tempfile
import uuid
from pathlib import Path

from .errors import CleanupWarning, WorkspaceError

logger = logging.getLogger(__name__)

WORKSPACE_PREFIX = "cliptrack-"

_FORBIDDEN_ID_CHARS = ("/", "\\", "\0")


class Workspace:
    def __init__(self, path: Path, export_id: str):
        self.path = path
        self.export_id = export_id
        self.released = False

    @classmethod
    def acquire(
        cls, export_id: str | None = None, root: str | Path | None = None,
    ) -> "Workspace":
        """Create a fresh scratch directory.

        Raises:
            WorkspaceError: The id is not a plain name, or the directory
                exists already or cannot be made.
        """
        export_id = export_id or uuid.uuid4().hex
        if any(ch in export_id for ch in _FORBIDDEN_ID_CHARS) or ".." in export_id:
            raise WorkspaceError(
                f"Invalid export id {export_id!r}: must not contain path separators or '..'"
            )
        base = Path(root) if root is not None else Path(tempfile.gettempdir())
        path = base / f"{WORKSPACE_PREFIX}{export_id}"
        try:
            path.mkdir(parents=True, exist_ok=False)
        except FileExistsError as e:
            raise WorkspaceError(
                f"Workspace already exists for export '{export_id}': {path}"
            ) from e
        except OSError as e:
            raise WorkspaceError(f"Cannot create workspace {path}: {e}") from e
        logger.debug("Acquired workspace %s", path)
        return cls(path, export_id)

    def asset_path(self, kind: str, track_id: int, ordinal: int, ext: str) -> Path:
        """Deterministic intermediate asset path, e.g. video-t0-000.mp4."""
        return self.path / f"{kind}-t{track_id}-{ordinal:03d}.{ext}"

    def file(self, name: str) -> Path:
        return self.path / name

    def release(self) -> CleanupWarning | None:
        """Remove the directory tree.

        A failure is logged and returned as a CleanupWarning, never raised:
        by the time we clean up, the export's outcome is already decided.
        """
        if self.released:
            return None
        self.released = True
        try:
            shutil.rmtree(self.path)
        except FileNotFoundError:
            return None
        except OSError as e:
            warning = CleanupWarning(f"Failed to remove workspace {self.path}: {e}")
            logger.warning("%s", warning)
            return warning
        logger.debug("Released workspace %s", self.path)
        return None

    def __enter__(self) -> "Workspace":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"Workspace({str(self.path)!r})"
