"""Pipeline orchestrator: one linear state machine per export.

  VALIDATING -> PREPROCESSING -> AUDIO_ASSEMBLING -> GRAPH_BUILDING
             -> COMPOSING -> CLEANING_UP -> DONE

Each stage runs only if the previous one succeeded. Any ExportError jumps
straight to CLEANING_UP and the export ends with that error, unchanged.
The workspace is released in every case; a failed release only adds a
warning to the result.

Single-clip, multi-clip and multi-track exports all go through here: a
single-clip export is just a timeline with one main-track clip.
"""

import logging
from pathlib import Path
from typing import Callable

from .audio import assemble_audio
from .common import format_number
from .errors import ExportError, Stage
from .filtergraph import GraphPlan, build_graph
from .preprocess import preprocess_main, preprocess_overlays
from .report import ExportResult
from .settings import ExportSettings, codec_params
from .timeline import Clip, Timeline, validate
from .tool import FFmpegRunner
from .workspace import Workspace

logger = logging.getLogger(__name__)


def composition_args(plan: GraphPlan, output_path: str | Path, settings: ExportSettings) -> list[str]:
    """Final invocation: inputs in plan order, graph, stream maps, codecs."""
    return [
        *plan.input_args(),
        "-filter_complex", plan.filter_text,
        "-map", f"[{plan.video_label}]",
        "-map", f"{plan.audio_index}:a",
        *codec_params(settings.codec),
        "-c:a", settings.audio_codec,
        "-r", str(settings.fps),
        "-t", format_number(plan.duration),
        "-y",
        str(output_path),
    ]


class TimelineExporter:
    """Drives one export at a time through the stages above.

    Args:
        settings: Export settings (defaults apply when None).
        runner: ffmpeg runner; built from settings when None.
        on_stage: Called with each Stage as it is entered.
    """

    def __init__(
        self,
        settings: ExportSettings | None = None,
        runner: FFmpegRunner | None = None,
        on_stage: Callable[[Stage], None] | None = None,
    ):
        self.settings = settings or ExportSettings()
        self.runner = runner or FFmpegRunner(self.settings.ffmpeg, timeout=self.settings.timeout)
        self.on_stage = on_stage
        self.stage: Stage | None = None

    def _enter(self, stage: Stage) -> None:
        self.stage = stage
        logger.info("Export stage: %s", stage.value)
        if self.on_stage:
            self.on_stage(stage)

    def cancel(self) -> None:
        """Terminate the in-flight ffmpeg call; the export fails and cleans up.

        Cancellation applies to the export in progress. The next export()
        call on this exporter starts uncancelled.
        """
        self.runner.cancel()

    def export(
        self,
        timeline: Timeline,
        output_path: str | Path,
        export_id: str | None = None,
    ) -> ExportResult:
        """Render timeline to output_path.

        Never raises ExportError: failures come back on the result, after
        the workspace has been removed. Other exceptions propagate (the
        workspace is still removed).
        """
        settings = self.settings
        result = ExportResult(export_id=export_id)
        workspace = None
        self.runner.reset()

        try:
            self._enter(Stage.VALIDATING)
            validated = validate(timeline)
            workspace = Workspace.acquire(export_id, root=settings.workspace_root)
            result.export_id = workspace.export_id

            self._enter(Stage.PREPROCESSING)
            main_assets = preprocess_main(self.runner, validated, workspace, settings)
            overlay_assets = preprocess_overlays(self.runner, validated, workspace, settings)

            self._enter(Stage.AUDIO_ASSEMBLING)
            audio_path = assemble_audio(self.runner, validated, workspace, settings)

            self._enter(Stage.GRAPH_BUILDING)
            plan = build_graph(validated, main_assets, overlay_assets, audio_path, settings)
            logger.debug("Filter graph: %s", plan.filter_text)

            self._enter(Stage.COMPOSING)
            Path(output_path).parent.mkdir(parents=True, exist_ok=True)
            self.runner.run(composition_args(plan, output_path, settings), stage=Stage.COMPOSING.value)
            result.output_path = str(output_path)

        except ExportError as e:
            if e.stage is None and self.stage is not None:
                e.stage = self.stage.value
            logger.error("Export failed during %s: %s", e.stage, e.message)
            result.error = e

        finally:
            self._enter(Stage.CLEANING_UP)
            if workspace is not None:
                warning = workspace.release()
                if warning is not None:
                    result.warnings.append(warning)
            self._enter(Stage.DONE)

        return result


def export_timeline(
    timeline: Timeline,
    output_path: str | Path,
    settings: ExportSettings | None = None,
    export_id: str | None = None,
) -> ExportResult:
    """Export a timeline with a fresh TimelineExporter."""
    return TimelineExporter(settings).export(timeline, output_path, export_id=export_id)


def export_trimmed_video(
    source: str,
    output_path: str | Path,
    trim_start: float,
    trim_end: float,
    settings: ExportSettings | None = None,
) -> ExportResult:
    """Export [trim_start, trim_end) of one source as its own video."""
    clip = Clip(source=str(source), trim_start=trim_start, trim_end=trim_end)
    timeline = Timeline(clips=[clip], global_trim_start=0.0)
    return export_timeline(timeline, output_path, settings=settings)
