"""CLI for the ffmpeg availability check.

Usage:
    cliptrack check
    cliptrack check --ffmpeg /usr/local/bin/ffmpeg
"""

import argparse
import sys

from .errors import ExportError
from .tool import check_ffmpeg


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Check that ffmpeg is installed and report its version.",
    )
    parser.add_argument(
        "--ffmpeg", default=None,
        help="ffmpeg binary to check (default: bundled/system ffmpeg)",
    )
    parsed = parser.parse_args(args)

    try:
        version = check_ffmpeg(parsed.ffmpeg)
    except ExportError as e:
        print(e.message, file=sys.stderr)
        sys.exit(1)
    print(version)


if __name__ == "__main__":
    main()
