from __future__ import annotations

import logging
import subprocess

import graphviz

logger = logging.getLogger(__name__)


class RenderError(Exception):
    """Raised when Graphviz cannot turn DOT source into an image."""


def render_svg(dot_src: str, engine: str = "dot") -> bytes:
    """
    Lay out and draw DOT source as SVG with the Graphviz executables.
    """
    source = graphviz.Source(dot_src, engine=engine)
    try:
        svg = source.pipe(format="svg")
    except graphviz.ExecutableNotFound as exc:
        raise RenderError("Graphviz executables not found. Install Graphviz and ensure 'dot' is on PATH.") from exc
    except subprocess.CalledProcessError as exc:
        raise RenderError(f"Graphviz rejected the story flow graph: {exc}") from exc
    logger.debug("Rendered %d bytes of SVG with %s.", len(svg), engine)
    return svg
