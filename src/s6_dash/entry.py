import sys
from typing import List, Optional

from .cli import app


USAGE = "Usage: {prog} <directory>"


def main(argv: Optional[List[str]] = None):
    if argv is None:
        argv = sys.argv[1:]

    # Handle version and help early; Typer renders both
    if argv and argv[0] in {"--version", "-V", "-h", "--help"}:
        return app(args=argv[:1], prog_name="s6-dash")

    # Exactly one positional argument; anything else prints usage and exits cleanly
    if len(argv) != 1 or argv[0].startswith("-"):
        print(USAGE.format(prog="s6-dash"))
        return

    return app(args=argv, prog_name="s6-dash")
