"""Subcommand dispatcher for cliptrack.

Usage:
    cliptrack export   --manifest timeline.yaml --output final.mp4
    cliptrack export   source.mp4 --start 10 --end 30 --output clip.mp4
    cliptrack check
"""

import argparse
import sys


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="cliptrack",
        description="Multi-track timeline export through ffmpeg.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Register subcommands. Each delegates to its own module's main().
    subparsers.add_parser("export", help="Export a timeline manifest or a single trimmed clip")
    subparsers.add_parser("check", help="Check that ffmpeg is available")

    # Parse only the subcommand name, pass the rest to the subcommand's parser.
    parsed, remaining = parser.parse_known_args(args)

    if parsed.command is None:
        parser.print_help()
        sys.exit(1)

    if parsed.command == "export":
        from .export_cli import main as export_main
        export_main(remaining)
    elif parsed.command == "check":
        from .check_cli import main as check_main
        check_main(remaining)


if __name__ == "__main__":
    main()
