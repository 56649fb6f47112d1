import importlib.util
import pathlib

import pytest

SCRIPT_PATH = pathlib.Path(__file__).resolve().parents[1] / "scripts" / "filter_story_flow.py"
DOT = "\n".join(
    [
        "digraph {",
        '"Open" -> "In progress" [label="1d 2h\\n30 stories"]',
        '"In progress" -> "Blocked" [label="2 stories"]',
        '"Blocked" [style=filled]',
        '{rank = same; "Open"; "Blocked"}',
        "}",
    ]
)


@pytest.fixture(scope="module")
def script():
    spec = importlib.util.spec_from_file_location("filter_story_flow", SCRIPT_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_writes_filtered_graph(script, tmp_path, capsys):
    source = tmp_path / "story_flow-ALPHA.dot"
    source.write_text(DOT, encoding="utf-8")
    target = tmp_path / "out" / "filtered.dot"

    script.main(["--input", str(source), "--output", str(target), "--min-stories", "10"])

    filtered = target.read_text(encoding="utf-8")
    assert '"Blocked"' not in filtered.replace('{rank = same; "Open"}', "")
    assert '{rank = same; "Open"}' in filtered
    assert "max 30 stories" in capsys.readouterr().out


def test_default_threshold(script):
    args = script.parse_args(["--input", "a.dot", "--output", "b.dot"])
    assert args.min_stories == 5


def test_negative_threshold_exits(script, tmp_path):
    source = tmp_path / "graph.dot"
    source.write_text(DOT, encoding="utf-8")
    with pytest.raises(SystemExit, match="non-negative"):
        script.filter_file(source, tmp_path / "out.dot", -1)


def test_missing_input_exits(script, tmp_path):
    with pytest.raises(SystemExit, match="Failed to read"):
        script.filter_file(tmp_path / "absent.dot", tmp_path / "out.dot", 5)
