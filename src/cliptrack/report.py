"""Export outcome and its one-line report."""

from dataclasses import dataclass, field

from .errors import CleanupWarning, ExportError


@dataclass
class ExportResult:
    """Outcome of one export: either output_path or error is set.

    warnings holds non-fatal CleanupWarnings; they never change ok.
    """

    export_id: str | None = None
    output_path: str | None = None
    error: ExportError | None = None
    warnings: list[CleanupWarning] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None and self.output_path is not None


def report(result: ExportResult) -> str:
    """Success message with the output path, or the first error unchanged."""
    if result.error is not None:
        return result.error.message
    return f"Video exported successfully to: {result.output_path}"
