"""Tests for the filter graph builder.

Graphs are built from fake asset paths; nothing here runs ffmpeg.
"""

from pathlib import Path

import pytest

from cliptrack.filtergraph import (
    TERMINAL_LABEL,
    FilterGraph,
    FilterNode,
    build_graph,
    quote_value,
    window_gate,
)
from cliptrack.settings import ExportSettings
from cliptrack.timeline import Clip, OverlaySpec, Timeline, validate


def _plan(clips, **timeline_kwargs):
    validated = validate(Timeline(clips=clips, **timeline_kwargs))
    main_assets = [
        (c, Path(f"/ws/video-t0-{i:03d}.mp4")) for i, c in enumerate(validated.main_clips)
    ]
    overlay_assets = [
        (c, Path(f"/ws/video-t{c.track_id}-{i:03d}.mp4"))
        for i, c in enumerate(validated.overlay_clips)
    ]
    return build_graph(
        validated, main_assets, overlay_assets, Path("/ws/audio.m4a"), ExportSettings(),
    )


class TestRendering:
    def test_node_syntax(self):
        node = FilterNode("scale", ("0:v",), (("w", "1920"), ("h", "1080")), ("out0",))
        assert node.render() == "[0:v]scale=w=1920:h=1080[out0]"

    def test_values_with_commas_are_quoted(self):
        assert quote_value("gte(t,5)*lt(t,7)") == "'gte(t,5)*lt(t,7)'"
        assert quote_value("PTS-STARTPTS+5/TB") == "PTS-STARTPTS+5/TB"

    def test_single_quote_in_value(self):
        assert quote_value("it's") == "'it'\\''s'"

    def test_rejects_bad_label(self):
        node = FilterNode("scale", ("0:v",), (), ("bad label]",))
        with pytest.raises(ValueError, match="Invalid filter graph label"):
            node.render()

    def test_graph_joins_with_semicolons(self):
        graph = FilterGraph([
            FilterNode("scale", ("0:v",), (("w", "2"), ("h", "2")), ("out0",)),
            FilterNode("null", ("out0",), (), ("video",)),
        ])
        assert graph.render() == "[0:v]scale=w=2:h=2[out0];[out0]null[video]"

    def test_node_with_two_outputs(self):
        node = FilterNode("split", ("out0",), (("outputs", "2"),), ("out1", "out2"))
        assert node.render() == "[out0]split=outputs=2[out1][out2]"
        assert node.output == "out1"

    def test_node_without_outputs_rejected(self):
        with pytest.raises(ValueError, match="no outputs"):
            FilterNode("null", ("0:v",)).render()


class TestWindowGate:
    def test_half_open_window(self):
        assert window_gate((5.0, 7.0)) == "gte(t,5)*lt(t,7)"

    def test_fractional_bounds(self):
        assert window_gate((1.25, 3.5)) == "gte(t,1.25)*lt(t,3.5)"


class TestSingleClip:
    def test_degenerates_to_one_scale_stage(self):
        plan = _plan([Clip("a.mp4", 1.0, 4.0)])
        assert plan.filter_text == "[0:v]scale=w=1920:h=1080[video]"
        assert plan.video_label == TERMINAL_LABEL
        assert [i.path for i in plan.inputs] == ["/ws/video-t0-000.mp4", "/ws/audio.m4a"]
        assert plan.audio_index == 1
        assert plan.duration == 3.0

    def test_input_args(self):
        plan = _plan([Clip("a.mp4", 0.0, 2.0)])
        assert plan.input_args() == ["-i", "/ws/video-t0-000.mp4", "-i", "/ws/audio.m4a"]


class TestOverlays:
    def test_overlay_chain(self):
        clips = [
            Clip("main.mp4", 0.0, 10.0),
            Clip("cam.mp4", 0.0, 2.0, track_id=1, start_time=5.0,
                 overlay=OverlaySpec(position=(100, 50), size=(320, 180), opacity=0.5)),
        ]
        plan = _plan(clips)
        assert plan.graph.kinds() == [
            "scale", "scale", "setpts", "format", "colorchannelmixer", "overlay",
        ]
        assert plan.filter_text == ";".join([
            "[0:v]scale=w=1920:h=1080[out0]",
            "[1:v]scale=w=320:h=180[out1]",
            "[out1]setpts=expr=PTS-STARTPTS+5/TB[out2]",
            "[out2]format=pix_fmts=yuva420p[out3]",
            "[out3]colorchannelmixer=aa=0.5[out4]",
            "[out0][out4]overlay=x=100:y=50:enable='gte(t,5)*lt(t,7)'[video]",
        ])
        assert plan.audio_index == 2

    def test_overlay_visible_exactly_in_window(self):
        """start_time=5, trim [0,2), global start 0 -> gate is t in [5, 7)."""
        clips = [
            Clip("main.mp4", 0.0, 10.0),
            Clip("cam.mp4", 0.0, 2.0, track_id=1, start_time=5.0),
        ]
        plan = _plan(clips, global_trim_start=0.0)
        overlay = plan.graph.nodes[-1]
        assert dict(overlay.params)["enable"] == "gte(t,5)*lt(t,7)"

    def test_default_overlay_spec_used(self):
        plan = _plan([Clip("main.mp4", 0.0, 10.0), Clip("cam.mp4", 0.0, 2.0, track_id=1)])
        assert "[1:v]scale=w=640:h=360" in plan.filter_text
        assert "colorchannelmixer=aa=0.8" in plan.filter_text
        assert "overlay=x=0:y=0:" in plan.filter_text

    def test_overlays_stack_in_track_order(self):
        clips = [
            Clip("main.mp4", 0.0, 10.0),
            Clip("top.mp4", 0.0, 2.0, track_id=2, start_time=0.0),
            Clip("low.mp4", 0.0, 2.0, track_id=1, start_time=3.0),
        ]
        plan = _plan(clips)
        paths = [i.path for i in plan.inputs]
        assert paths.index("/ws/video-t1-000.mp4") < paths.index("/ws/video-t2-001.mp4")
        overlays = [n for n in plan.graph.nodes if n.kind == "overlay"]
        # Second overlay composites onto the first overlay's output.
        assert overlays[1].inputs[0] == overlays[0].output
        assert overlays[-1].output == TERMINAL_LABEL

    def test_labels_never_reused(self):
        clips = [Clip("main.mp4", 0.0, 10.0)] + [
            Clip(f"ov{i}.mp4", 0.0, 1.0, track_id=1, start_time=i) for i in range(4)
        ]
        plan = _plan(clips)
        outputs = [n.output for n in plan.graph.nodes]
        assert len(outputs) == len(set(outputs))


def _blended(mode, position=(100, 50), size=(320, 180), opacity=0.5):
    return _plan([
        Clip("main.mp4", 0.0, 10.0),
        Clip("cam.mp4", 0.0, 2.0, track_id=1, start_time=5.0,
             overlay=OverlaySpec(position=position, size=size, opacity=opacity, blend_mode=mode)),
    ])


class TestBlendModes:
    def test_multiply_graph(self):
        plan = _blended("multiply")
        assert plan.filter_text == ";".join([
            "[0:v]scale=w=1920:h=1080[out0]",
            "[1:v]scale=w=320:h=180[out1]",
            "[out1]setpts=expr=PTS-STARTPTS+5/TB[out2]",
            "[out0]split=outputs=2[out3][out4]",
            "[out4]format=pix_fmts=gbrp[out5]",
            "[out5]setsar=r=1[out6]",
            "[out6]crop=w=320:h=180:x=100:y=50[out7]",
            "[out2]format=pix_fmts=gbrp[out8]",
            "[out8]setsar=r=1[out9]",
            "[out7][out9]blend=all_mode=multiply:all_opacity=0.5[out10]",
            "[out3][out10]overlay=x=100:y=50:enable='gte(t,5)*lt(t,7)'[video]",
        ])
        assert plan.audio_index == 2

    def test_screen_uses_blend_filter(self):
        plan = _blended("screen", opacity=0.8)
        blend = [n for n in plan.graph.nodes if n.kind == "blend"]
        assert len(blend) == 1
        assert dict(blend[0].params) == {"all_mode": "screen", "all_opacity": "0.8"}
        assert "colorchannelmixer" not in plan.graph.kinds()

    def test_overlay_mode_uses_blend_filter(self):
        plan = _blended("overlay")
        blend = [n for n in plan.graph.nodes if n.kind == "blend"][0]
        assert dict(blend.params)["all_mode"] == "overlay"
        # Backdrop region is the first (top) blend input.
        crop = [n for n in plan.graph.nodes if n.kind == "crop"][0]
        assert blend.inputs[0] == crop.output
        assert plan.graph.nodes[-1].kind == "overlay"
        assert plan.graph.nodes[-1].output == TERMINAL_LABEL

    def test_normal_mode_has_no_blend(self):
        plan = _blended("normal")
        assert "blend" not in plan.graph.kinds()
        assert "split" not in plan.graph.kinds()

    def test_layer_partly_off_canvas_is_clipped(self):
        plan = _blended("multiply", position=(1800, -20))
        crops = [n for n in plan.graph.nodes if n.kind == "crop"]
        assert [dict(c.params) for c in crops] == [
            {"w": "120", "h": "160", "x": "1800", "y": "0"},
            {"w": "120", "h": "160", "x": "0", "y": "20"},
        ]
        overlay = plan.graph.nodes[-1]
        assert dict(overlay.params)["x"] == "1800"
        assert dict(overlay.params)["y"] == "0"

    def test_layer_fully_off_canvas_composited_normally(self):
        plan = _blended("screen", position=(2000, 0))
        assert "blend" not in plan.graph.kinds()
        assert "colorchannelmixer=aa=0.5" in plan.filter_text

    def test_labels_unique_with_blends(self):
        plan = _plan([Clip("main.mp4", 0.0, 10.0)] + [
            Clip(f"ov{i}.mp4", 0.0, 1.0, track_id=1, start_time=i,
                 overlay=OverlaySpec(blend_mode="multiply"))
            for i in range(3)
        ])
        labels = [label for n in plan.graph.nodes for label in n.outputs]
        assert len(labels) == len(set(labels))


class TestMultipleMainClips:
    def test_canvas_base_and_gated_main_clips(self):
        clips = [Clip("a.mp4", 0.0, 2.0, start_time=0.0), Clip("b.mp4", 5.0, 8.0, start_time=2.0)]
        plan = _plan(clips)
        canvas = plan.inputs[0]
        assert canvas.options == ("-f", "lavfi")
        assert canvas.path == "color=c=black:s=1920x1080:r=30:d=5"
        assert [i.path for i in plan.inputs[1:]] == [
            "/ws/video-t0-000.mp4", "/ws/video-t0-001.mp4", "/ws/audio.m4a",
        ]
        assert plan.filter_text == ";".join([
            "[1:v]scale=w=1920:h=1080[out0]",
            "[out0]setpts=expr=PTS-STARTPTS+0/TB[out1]",
            "[0:v][out1]overlay=x=0:y=0:enable='gte(t,0)*lt(t,2)'[out2]",
            "[2:v]scale=w=1920:h=1080[out3]",
            "[out3]setpts=expr=PTS-STARTPTS+2/TB[out4]",
            "[out2][out4]overlay=x=0:y=0:enable='gte(t,2)*lt(t,5)'[video]",
        ])
        assert plan.audio_index == 3

    def test_single_clip_not_at_zero_uses_canvas(self):
        plan = _plan([Clip("a.mp4", 0.0, 2.0, start_time=3.0)], global_trim_start=0.0)
        assert plan.inputs[0].options == ("-f", "lavfi")
        assert "enable='gte(t,3)*lt(t,5)'" in plan.filter_text

    def test_overlay_inputs_follow_main_inputs(self):
        clips = [
            Clip("a.mp4", 0.0, 2.0, start_time=0.0),
            Clip("b.mp4", 0.0, 2.0, start_time=2.0),
            Clip("cam.mp4", 0.0, 1.0, track_id=1, start_time=1.0),
        ]
        plan = _plan(clips)
        paths = [i.path for i in plan.inputs]
        assert paths[3] == "/ws/video-t1-000.mp4"
        assert "[3:v]scale=w=640:h=360" in plan.filter_text
        assert plan.audio_index == 4


class TestDeterminism:
    def test_identical_timelines_identical_graphs(self):
        def clips():
            return [
                Clip("a.mp4", 0.0, 3.0, start_time=0.0),
                Clip("b.mp4", 1.0, 2.5, start_time=3.0),
                Clip("cam.mp4", 0.0, 2.0, track_id=1, start_time=1.0,
                     overlay=OverlaySpec(position=(10, 10), opacity=0.3)),
            ]
        first = _plan(clips())
        second = _plan(clips())
        assert first.filter_text == second.filter_text
        assert first.input_args() == second.input_args()
