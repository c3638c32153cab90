"""cliptrack.common — small shared helpers.

Contains: path variable resolution, number formatting for ffmpeg
arguments, and pair parsing for manifest fields.
"""

import re


# ── Path utilities ─────────────────────────────────────────────────

def resolve_path_vars(text: str, paths: dict[str, str]) -> str:
    """Replace ${name} variables in a string using the paths dict."""
    def _replace(match):
        key = match.group(1)
        if key not in paths:
            raise ValueError(f"Unknown path variable: ${{{key}}}")
        return str(paths[key])
    return re.sub(r"\$\{(\w+)\}", _replace, text)


# ── Number formatting ──────────────────────────────────────────────

def format_number(value: float) -> str:
    """Format a number (seconds, opacity) for an ffmpeg argument.

    Millisecond precision, trailing zeros stripped, so 5.0 -> "5" and
    1.25 -> "1.25". Deterministic for identical inputs.
    """
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    if text in ("", "-0"):
        return "0"
    return text


# ── Manifest field parsing ─────────────────────────────────────────

def parse_pair(value, field: str, cast=float) -> tuple:
    """Parse a two-element list/tuple manifest field, e.g. [640, 360]."""
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError(f"{field} must be a two-element list, got {value!r}")
    try:
        return (cast(value[0]), cast(value[1]))
    except (TypeError, ValueError):
        raise ValueError(f"{field} must contain numbers, got {value!r}") from None
