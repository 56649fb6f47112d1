from __future__ import annotations

import logging
import numbers
import re
from dataclasses import dataclass
from typing import List, Tuple, Union

logger = logging.getLogger(__name__)

EDGE_PATTERN = re.compile(r'^("[^"]+") -> ("[^"]+") \[label="(?:[^"]*\D)?(\d+) stories"')
NODE_PATTERN = re.compile(r'^("[^"]+") \[style=')
RANK_PATTERN = re.compile(r"^\{rank = \w+;")


class InvalidThreshold(ValueError):
    """Raised when a story threshold or running maximum is not a non-negative integer."""


@dataclass(frozen=True)
class EdgeLine:
    raw: str
    source: str
    target: str
    stories: int


@dataclass(frozen=True)
class NodeLine:
    raw: str
    label: str


@dataclass(frozen=True)
class RankLine:
    """
    Single-line rank group such as ``{rank = same; "A"; "B"}``.

    `tokens` keeps the member tokens exactly as they appear between the semicolons so
    that a rewritten line only loses the members that were filtered out.
    """

    raw: str
    rank: str
    tokens: Tuple[str, ...]
    trailer: str = ""

    @property
    def members(self) -> Tuple[str, ...]:
        return tuple(token.strip() for token in self.tokens if token.strip())

    def rewrite(self, keep: frozenset) -> str:
        kept = [token for token in self.tokens if token.strip() in keep]
        return "{" + self.rank + ";" + ";".join(kept) + "}" + self.trailer


@dataclass(frozen=True)
class OtherLine:
    raw: str


GraphLine = Union[EdgeLine, NodeLine, RankLine, OtherLine]


@dataclass
class FilterResult:
    graph: str
    min_stories: int
    max_stories: int


def validate_count(value: object, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value < 0:
        raise InvalidThreshold(f"{name} must be a non-negative integer, got {value!r}")
    return int(value)


def _parse_rank(line: str) -> RankLine:
    body = line.rstrip()
    inner = body[1:-1]
    rank, *tokens = inner.split(";")
    return RankLine(raw=line, rank=rank, tokens=tuple(tokens), trailer=line[len(body) :])


def classify_line(line: str) -> GraphLine:
    """Classify one line of DOT source. Unrecognised shapes become `OtherLine`."""
    edge_match = EDGE_PATTERN.match(line)
    if edge_match:
        return EdgeLine(
            raw=line,
            source=edge_match.group(1),
            target=edge_match.group(2),
            stories=int(edge_match.group(3)),
        )
    node_match = NODE_PATTERN.match(line)
    if node_match:
        return NodeLine(raw=line, label=node_match.group(1))
    if RANK_PATTERN.match(line) and line.rstrip().endswith("}"):
        return _parse_rank(line)
    return OtherLine(raw=line)


def _scan(lines: List[GraphLine], min_stories: int) -> Tuple[frozenset, int]:
    nodes = set()
    max_stories = 0
    for line in lines:
        if not isinstance(line, EdgeLine):
            continue
        max_stories = max(max_stories, line.stories)
        if line.stories >= min_stories:
            nodes.add(line.source)
            nodes.add(line.target)
    return frozenset(nodes), max_stories


def retained_nodes(dot_src: str, min_stories: int) -> frozenset:
    """Return the quoted labels of every node touched by an edge that meets `min_stories`."""
    min_stories = validate_count(min_stories, "min_stories")
    nodes, _ = _scan([classify_line(line) for line in dot_src.split("\n")], min_stories)
    return nodes


def filter_graph(dot_src: str, min_stories: int, max_stories: int = 0) -> FilterResult:
    """
    Drop edges carrying fewer than `min_stories` stories from a story flow graph.

    Node style lines survive only when a kept edge touches them. Rank groups are
    rewritten to list only kept nodes and may end up empty. Every other line passes
    through unchanged, in order.

    `max_stories` is the running maximum from an earlier call on the same source, or 0
    for new source. The returned maximum covers every edge in the source, including
    edges that were filtered out.
    """
    min_stories = validate_count(min_stories, "min_stories")
    max_stories = validate_count(max_stories, "max_stories")

    lines = [classify_line(line) for line in dot_src.split("\n")]
    nodes, source_max = _scan(lines, min_stories)

    output: List[str] = []
    kept_edges = 0
    for line in lines:
        if isinstance(line, EdgeLine):
            if line.stories >= min_stories:
                output.append(line.raw)
                kept_edges += 1
        elif isinstance(line, NodeLine):
            if line.label in nodes:
                output.append(line.raw)
        elif isinstance(line, RankLine):
            output.append(line.rewrite(nodes))
        else:
            output.append(line.raw)

    result = FilterResult(
        graph="\n".join(output),
        min_stories=min_stories,
        max_stories=max(max_stories, source_max),
    )
    logger.debug(
        "Filtered story flow at %d stories: kept %d edges and %d nodes (max %d).",
        min_stories,
        kept_edges,
        len(nodes),
        result.max_stories,
    )
    return result
