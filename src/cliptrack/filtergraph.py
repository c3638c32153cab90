"""Filter graph builder for the video side of the final composition.

The graph is built as a list of typed FilterNode descriptors and turned
into ffmpeg's textual syntax only by FilterGraph.render(), so quoting
lives in one place and the graph can be inspected in tests.

Layout (N = canvas size, inputs in this fixed order):

  single main clip starting at 0:
      [0:v] scale=N                                  -> base
  otherwise:
      [0:v] color canvas (lavfi), output duration    -> base
      per main clip k:   scale=N, setpts(+start), overlay on base, gated

  per overlay clip:      scale=size, setpts(+start), then by blend mode
    normal:              format=yuva420p, colorchannelmixer=aa=opacity,
                         overlay at position, gated by its window
    multiply/screen/overlay:
                         split base; crop the covered rectangle (gbrp);
                         blend=all_mode=mode:all_opacity=opacity with the
                         layer; overlay the result back, gated
  then the assembled audio, mapped as <last input>:a

Every generated label comes from one counter (out0, out1, ...). The last
stage writes the fixed label "video". With a single base clip and no
overlays that is just the scale stage.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from .common import format_number
from .settings import ExportSettings
from .timeline import Clip, OverlaySpec, ValidatedTimeline, effective_window, output_duration

logger = logging.getLogger(__name__)

TERMINAL_LABEL = "video"
OVERLAY_PIX_FMT = "yuva420p"
BLEND_PIX_FMT = "gbrp"

_LABEL_RE = re.compile(r"^[A-Za-z0-9_:.]+$")
_SPECIAL_CHARS = set("\\'[],;: \t\n=")


# ── Graph model ──────────────────────────────────────────────────


def quote_value(value: str) -> str:
    """Quote a filter option value if it contains graph metacharacters.

    Single quotes cannot appear inside a quoted run, so they are closed,
    backslash-escaped and reopened.
    """
    if value and not any(c in _SPECIAL_CHARS for c in value):
        return value
    return "'" + value.replace("'", "'\\''") + "'"


@dataclass(frozen=True)
class FilterNode:
    """One filter stage: [in0][in1]kind=k=v:k=v[out0][out1]."""

    kind: str
    inputs: tuple[str, ...]
    params: tuple[tuple[str, str], ...] = ()
    outputs: tuple[str, ...] = ()

    @property
    def output(self) -> str:
        """The first (usually only) output label."""
        return self.outputs[0]

    def render(self) -> str:
        if not self.outputs:
            raise ValueError(f"Filter node {self.kind!r} has no outputs")
        for label in (*self.inputs, *self.outputs):
            if not _LABEL_RE.match(label):
                raise ValueError(f"Invalid filter graph label: {label!r}")
        ins = "".join(f"[{label}]" for label in self.inputs)
        outs = "".join(f"[{label}]" for label in self.outputs)
        text = self.kind
        if self.params:
            text += "=" + ":".join(f"{k}={quote_value(v)}" for k, v in self.params)
        return f"{ins}{text}{outs}"


@dataclass
class FilterGraph:
    nodes: list[FilterNode] = field(default_factory=list)

    def render(self) -> str:
        return ";".join(node.render() for node in self.nodes)

    def kinds(self) -> list[str]:
        return [node.kind for node in self.nodes]


@dataclass(frozen=True)
class GraphInput:
    """One -i input of the composition, with its input options."""

    path: str
    options: tuple[str, ...] = ()

    def to_args(self) -> list[str]:
        return [*self.options, "-i", self.path]


@dataclass
class GraphPlan:
    """Everything the composition invocation needs from the builder."""

    inputs: list[GraphInput]
    graph: FilterGraph
    video_label: str
    audio_index: int
    duration: float

    def input_args(self) -> list[str]:
        args = []
        for spec in self.inputs:
            args.extend(spec.to_args())
        return args

    @property
    def filter_text(self) -> str:
        return self.graph.render()


# ── Builder ──────────────────────────────────────────────────────


class GraphBuilder:
    """Accumulates inputs and nodes, naming every output from one counter."""

    def __init__(self):
        self.inputs: list[GraphInput] = []
        self.graph = FilterGraph()
        self._counter = 0

    def add_input(self, path: str | Path, options: tuple[str, ...] = ()) -> int:
        self.inputs.append(GraphInput(str(path), tuple(options)))
        return len(self.inputs) - 1

    def _label(self) -> str:
        label = f"out{self._counter}"
        self._counter += 1
        return label

    def add(self, kind: str, inputs: list[str], params: list[tuple[str, object]]) -> str:
        label = self._label()
        node = FilterNode(
            kind=kind,
            inputs=tuple(inputs),
            params=tuple((k, str(v)) for k, v in params),
            outputs=(label,),
        )
        self.graph.nodes.append(node)
        return label

    def finish(self, label: str) -> str:
        """Route the chain ending at label into the terminal label."""
        nodes = self.graph.nodes
        if nodes and nodes[-1].outputs == (label,):
            last = nodes[-1]
            nodes[-1] = FilterNode(last.kind, last.inputs, last.params, (TERMINAL_LABEL,))
        else:
            self.graph.nodes.append(FilterNode("null", (label,), (), (TERMINAL_LABEL,)))
        return TERMINAL_LABEL

    # -- stage helpers ------------------------------------------------

    def scale(self, src: str, size: tuple[int, int]) -> str:
        w, h = size
        return self.add("scale", [src], [("w", int(w)), ("h", int(h))])

    def shift(self, src: str, start: float) -> str:
        """Delay a stream so its first frame lands at start seconds."""
        return self.add("setpts", [src], [("expr", f"PTS-STARTPTS+{format_number(start)}/TB")])

    def alpha(self, src: str, opacity: float) -> str:
        fmt = self.add("format", [src], [("pix_fmts", OVERLAY_PIX_FMT)])
        return self.add("colorchannelmixer", [fmt], [("aa", format_number(opacity))])

    def composite(
        self, base: str, top: str, position: tuple[int, int], window: tuple[float, float],
    ) -> str:
        x, y = position
        return self.add("overlay", [base, top], [
            ("x", int(x)),
            ("y", int(y)),
            ("enable", window_gate(window)),
        ])

    def split(self, src: str) -> tuple[str, str]:
        first, second = self._label(), self._label()
        self.graph.nodes.append(
            FilterNode("split", (src,), (("outputs", "2"),), (first, second))
        )
        return first, second

    def crop(self, src: str, size: tuple[int, int], offset: tuple[int, int]) -> str:
        (w, h), (x, y) = size, offset
        return self.add("crop", [src], [("w", int(w)), ("h", int(h)), ("x", int(x)), ("y", int(y))])

    def planar(self, src: str) -> str:
        """Convert to the blend pixel format with square pixels."""
        fmt = self.add("format", [src], [("pix_fmts", BLEND_PIX_FMT)])
        return self.add("setsar", [fmt], [("r", 1)])

    def blend(
        self,
        base: str,
        layer: str,
        spec: OverlaySpec,
        window: tuple[float, float],
        canvas: tuple[int, int],
    ) -> str | None:
        """Blend a placed layer into the part of base it covers.

        The covered rectangle of base is cropped out and fed to ffmpeg's
        blend filter as the top input, with the layer as the bottom; the
        result is overlaid back at the same spot while the window is open.
        With all_opacity applied to the top input, opacity 0 leaves base
        unchanged. Until the layer's first frame arrives, blend passes
        the top input through.

        Returns None when the layer lies entirely off the canvas.
        """
        x, y = spec.position
        w, h = spec.size
        cw, ch = canvas
        x0, y0 = max(int(x), 0), max(int(y), 0)
        x1, y1 = min(int(x) + int(w), int(cw)), min(int(y) + int(h), int(ch))
        if x1 <= x0 or y1 <= y0:
            return None
        region_size = (x1 - x0, y1 - y0)

        keep, backdrop = self.split(base)
        region = self.crop(self.planar(backdrop), region_size, (x0, y0))
        bottom = self.planar(layer)
        if region_size != (int(w), int(h)):
            bottom = self.crop(bottom, region_size, (x0 - int(x), y0 - int(y)))
        mixed = self.add("blend", [region, bottom], [
            ("all_mode", spec.blend_mode),
            ("all_opacity", format_number(spec.opacity)),
        ])
        return self.composite(keep, mixed, (x0, y0), window)


def window_gate(window: tuple[float, float]) -> str:
    """Timeline-editing expression true exactly for t in [start, end)."""
    start, end = window
    return f"gte(t,{format_number(start)})*lt(t,{format_number(end)})"


def canvas_source(size: tuple[int, int], duration: float, fps: int) -> str:
    """lavfi source for a black background of the given size and length."""
    w, h = size
    return f"color=c=black:s={int(w)}x{int(h)}:r={fps}:d={format_number(duration)}"


def build_graph(
    validated: ValidatedTimeline,
    main_assets: list[tuple[Clip, Path]],
    overlay_assets: list[tuple[Clip, Path]],
    audio_path: Path,
    settings: ExportSettings,
) -> GraphPlan:
    """Build the composition inputs and filter graph.

    Args:
        validated: The validated timeline.
        main_assets: (clip, video asset) per surviving main clip, in
            start_time order.
        overlay_assets: (clip, video asset) per surviving overlay clip, in
            compositing order; later entries draw on top.
        audio_path: The assembled audio asset.
        settings: Canvas size and fps.

    Returns:
        GraphPlan with inputs ordered base/main, overlays, audio.
    """
    timeline = validated.timeline
    canvas = settings.canvas
    duration = output_duration(validated)
    b = GraphBuilder()

    windows = [effective_window(clip, timeline) for clip, _ in main_assets]

    if len(main_assets) == 1 and windows[0][0] == 0:
        idx = b.add_input(main_assets[0][1])
        chain = b.scale(f"{idx}:v", canvas)
    else:
        idx = b.add_input(canvas_source(canvas, duration, settings.fps), ("-f", "lavfi"))
        chain = f"{idx}:v"
        for (clip, path), window in zip(main_assets, windows):
            i = b.add_input(path)
            placed = b.shift(b.scale(f"{i}:v", canvas), window[0])
            chain = b.composite(chain, placed, (0, 0), window)

    for clip, path in overlay_assets:
        window = effective_window(clip, timeline)
        spec = clip.overlay
        i = b.add_input(path)
        placed = b.shift(b.scale(f"{i}:v", spec.size), window[0])
        blended = None
        if spec.blend_mode != "normal":
            blended = b.blend(chain, placed, spec, window, canvas)
            if blended is None:
                logger.debug("Overlay %s lies off the canvas, composited as normal", clip.source)
        if blended is not None:
            chain = blended
        else:
            chain = b.composite(chain, b.alpha(placed, spec.opacity), spec.position, window)

    video_label = b.finish(chain)
    audio_index = b.add_input(audio_path)

    return GraphPlan(
        inputs=b.inputs,
        graph=b.graph,
        video_label=video_label,
        audio_index=audio_index,
        duration=duration,
    )
