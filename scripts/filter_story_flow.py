#!/usr/bin/env python
"""
Filter a story flow DOT file down to the edges carrying at least a given number of stories.

Usage:
    python scripts/filter_story_flow.py --input data/story_flow-PROJ.dot --output runtime/story_flow-PROJ.dot --min-stories 10

Node and rank lines that no longer touch a kept edge are dropped as well. The largest
edge weight in the input is printed so the threshold can be tuned.
"""

from __future__ import annotations

import argparse
import pathlib
import sys

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from story_flow.graph_filter import InvalidThreshold, filter_graph  # noqa: E402  pylint: disable=wrong-import-position
from story_flow.session import DEFAULT_MIN_STORIES  # noqa: E402  pylint: disable=wrong-import-position


def filter_file(input_path: pathlib.Path, output_path: pathlib.Path, min_stories: int) -> int:
    try:
        dot_src = input_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise SystemExit(f"Failed to read story flow graph: {exc}") from exc
    try:
        result = filter_graph(dot_src, min_stories)
    except InvalidThreshold as exc:
        raise SystemExit(str(exc)) from exc

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(result.graph, encoding="utf-8")
    print(f"Wrote filtered graph to {output_path} (min {result.min_stories}, max {result.max_stories} stories)")
    return result.max_stories


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Prune low-traffic edges from a story flow DOT file.")
    parser.add_argument("--input", required=True, type=pathlib.Path, help="Path to the story flow .dot file.")
    parser.add_argument("--output", required=True, type=pathlib.Path, help="Destination for the filtered .dot file.")
    parser.add_argument(
        "--min-stories",
        type=int,
        default=DEFAULT_MIN_STORIES,
        help=f"Minimum stories an edge needs to stay visible (default: {DEFAULT_MIN_STORIES}).",
    )
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    filter_file(args.input, args.output, args.min_stories)


if __name__ == "__main__":
    main()
