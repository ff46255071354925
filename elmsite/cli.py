from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from .errors import BuildError
from .log import configure_logging
from .pipeline import build_site
from .watch import watch


def _add_common_options(parser: argparse.ArgumentParser, *, suppress_default: bool = False) -> None:
    def default(value: object) -> object:
        return argparse.SUPPRESS if suppress_default else value

    parser.add_argument(
        "-d",
        "--drafts",
        action="store_true",
        default=default(False),
        help="Include draft (future dated) posts.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=default(False),
        help="Show more information when generating output.",
    )
    parser.add_argument(
        "--site",
        default=default("."),
        help="Site directory containing config.json (defaults to the current directory).",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=default(None),
        help="Number of parallel render workers (0 = one per CPU; overrides config).",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="elmsite",
        description="Build a static site from Markdown content and Elm layouts.",
    )
    _add_common_options(parser)
    subparsers = parser.add_subparsers(dest="command")
    build_parser_ = subparsers.add_parser("build", help="Build the site (default command).")
    _add_common_options(build_parser_, suppress_default=True)
    watch_parser = subparsers.add_parser(
        "watch", help="Watch for source file changes and rebuild the site incrementally."
    )
    _add_common_options(watch_parser, suppress_default=True)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(verbose=args.verbose)
    root = Path(args.site).resolve()

    if args.command == "watch":
        try:
            watch(root, include_drafts=args.drafts, workers=args.workers)
        except KeyboardInterrupt:
            pass
        return 0

    start = time.perf_counter()
    try:
        build_site(root, include_drafts=args.drafts, workers=args.workers)
    except BuildError as exc:
        message = str(exc)
        if message:
            print(f"\n{message}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"\n{exc}", file=sys.stderr)
        return 1
    elapsed = time.perf_counter() - start
    print(f"Build completed in {elapsed:.2f}s.")
    return 0
