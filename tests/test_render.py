import subprocess
from unittest.mock import patch

import graphviz
import pytest

from story_flow.render import RenderError, render_svg

DOT = 'digraph {\n"A" -> "B" [label="12 stories"]\n}'


def test_render_pipes_source_to_svg():
    with patch("story_flow.render.graphviz.Source") as source_cls:
        source_cls.return_value.pipe.return_value = b"<svg/>"
        assert render_svg(DOT) == b"<svg/>"
    source_cls.assert_called_once_with(DOT, engine="dot")
    source_cls.return_value.pipe.assert_called_once_with(format="svg")


def test_missing_graphviz_executables():
    with patch("story_flow.render.graphviz.Source") as source_cls:
        source_cls.return_value.pipe.side_effect = graphviz.ExecutableNotFound(["dot", "-Tsvg"])
        with pytest.raises(RenderError, match="Graphviz executables not found"):
            render_svg(DOT)


def test_rejected_source():
    with patch("story_flow.render.graphviz.Source") as source_cls:
        source_cls.return_value.pipe.side_effect = subprocess.CalledProcessError(1, ["dot", "-Tsvg"])
        with pytest.raises(RenderError, match="rejected"):
            render_svg("digraph {")
