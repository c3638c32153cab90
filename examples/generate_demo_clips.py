#!/usr/bin/env python3
"""Generate synthetic source videos for the cliptrack demo timeline.

Creates two "screen" recordings and one "webcam" clip in
examples/demo-clips/. Each is a solid color with a sine tone at its own
pitch, so a render makes it obvious which clip is playing and whether
the audio follows the main track.

Usage:
    python examples/generate_demo_clips.py
    # Then render:
    cliptrack export --manifest examples/demo-timeline.yaml \
        --output examples/demo-renders/demo.mp4
"""

import numpy as np
from moviepy import AudioClip, ColorClip
from pathlib import Path

OUTPUT_DIR = Path(__file__).resolve().parent / "demo-clips"
SIZE = (640, 360)
FPS = 30
AUDIO_FPS = 44100

# (name, color, duration in seconds, tone in Hz)
CLIPS = [
    ("screen-01", (60, 60, 180),  8.0, 330),  # blue
    ("screen-02", (60, 160, 60),  6.0, 440),  # green
    ("webcam",    (180, 60, 60),  5.0, 660),  # red
]


def _tone(freq: float, duration: float) -> AudioClip:
    return AudioClip(
        lambda t: 0.2 * np.sin(2 * np.pi * freq * t),
        duration=duration,
        fps=AUDIO_FPS,
    )


def main():
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    for name, color, duration, freq in CLIPS:
        out = OUTPUT_DIR / f"{name}.mp4"
        if out.exists():
            print(f"  skip {name} (exists)")
            continue

        clip = ColorClip(size=SIZE, color=color, duration=duration)
        clip = clip.with_audio(_tone(freq, duration))
        clip.write_videofile(str(out), fps=FPS, audio_codec="aac", logger=None)
        print(f"  wrote {name} ({duration}s, {freq} Hz)")

    print(f"\nDone. {len(CLIPS)} clips in {OUTPUT_DIR}")


if __name__ == "__main__":
    main()
