import json

import httpx
import pytest

from story_flow.graph_source import GraphSource, GraphSourceError

PROJECTS = [
    {"name": "ALPHA", "quality_display_name": "Alpha Team", "recent": True, "core": True},
    {"name": "BETA", "recent": False, "core": False},
]
STATES = {"#ff0000": "open", "#00ff00": "done"}
PALETTE = ["#313695", "#ffffbf", "#a50026"]
DOT = 'digraph {\n"Open" -> "Done" [label="4 stories"]\n}\n'


@pytest.fixture
def data_dir(tmp_path):
    (tmp_path / "projects_meta.json").write_text(json.dumps(PROJECTS), encoding="utf-8")
    (tmp_path / "story_flow_states.json").write_text(json.dumps(STATES), encoding="utf-8")
    (tmp_path / "story_flow_palette.json").write_text(json.dumps(PALETTE), encoding="utf-8")
    (tmp_path / "story_flow-ALPHA.dot").write_text(DOT, encoding="utf-8")
    return tmp_path


def _remote_source(routes):
    def handler(request: httpx.Request) -> httpx.Response:
        body = routes.get(request.url.path)
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, content=body)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    return GraphSource("https://example.test/data/", client=client)


class TestLocalSource:
    def test_projects_frame(self, data_dir):
        projects = GraphSource(str(data_dir)).projects()
        assert list(projects["name"]) == ["ALPHA", "BETA"]
        assert list(projects["display_name"]) == ["Alpha Team", "BETA"]
        assert "recent" in projects.columns

    def test_projects_without_display_names(self, tmp_path):
        (tmp_path / "projects_meta.json").write_text(json.dumps([{"name": "GAMMA"}]), encoding="utf-8")
        projects = GraphSource(str(tmp_path)).projects()
        assert list(projects["display_name"]) == ["GAMMA"]

    def test_empty_project_list(self, tmp_path):
        (tmp_path / "projects_meta.json").write_text("[]", encoding="utf-8")
        projects = GraphSource(str(tmp_path)).projects()
        assert projects.empty
        assert list(projects.columns) == ["name", "display_name"]

    def test_states_and_palette(self, data_dir):
        source = GraphSource(str(data_dir))
        assert source.states() == STATES
        assert source.palette() == PALETTE

    def test_graph_text(self, data_dir):
        assert GraphSource(str(data_dir)).graph_text("ALPHA") == DOT

    def test_missing_graph(self, data_dir):
        with pytest.raises(GraphSourceError):
            GraphSource(str(data_dir)).graph_text("MISSING")

    def test_invalid_json(self, tmp_path):
        (tmp_path / "story_flow_states.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(GraphSourceError):
            GraphSource(str(tmp_path)).states()

    def test_wrong_json_shape(self, tmp_path):
        (tmp_path / "projects_meta.json").write_text(json.dumps({"name": "ALPHA"}), encoding="utf-8")
        (tmp_path / "story_flow_palette.json").write_text(json.dumps({"a": 1}), encoding="utf-8")
        source = GraphSource(str(tmp_path))
        with pytest.raises(GraphSourceError):
            source.projects()
        with pytest.raises(GraphSourceError):
            source.palette()


class TestRemoteSource:
    def test_fetches_relative_to_base_url(self):
        source = _remote_source(
            {
                "/data/projects_meta.json": json.dumps(PROJECTS).encode(),
                "/data/story_flow-ALPHA.dot": DOT.encode("utf-8"),
            }
        )
        assert source.remote
        assert list(source.projects()["name"]) == ["ALPHA", "BETA"]
        assert source.graph_text("ALPHA") == DOT

    def test_http_error_status(self):
        source = _remote_source({})
        with pytest.raises(GraphSourceError, match="404"):
            source.graph_text("ALPHA")

    def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        source = GraphSource("http://example.test", client=client)
        with pytest.raises(GraphSourceError) as excinfo:
            source.states()
        assert isinstance(excinfo.value.__cause__, httpx.ConnectError)
