"""cliptrack — multi-track timeline export through ffmpeg.

Compile a timeline of trimmed main-track clips and timed, positioned
overlay clips into preprocessing steps, a filter graph and one final
composition, run inside a throwaway per-export workspace.
Timelines are declared in YAML manifests.
"""
