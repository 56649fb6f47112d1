from __future__ import annotations

import json
import logging
import pathlib
from typing import Any, Dict, List, Optional

import httpx
import pandas as pd

PROJECTS_FILE = "projects_meta.json"
PALETTE_FILE = "story_flow_palette.json"
STATES_FILE = "story_flow_states.json"
GRAPH_FILE_TEMPLATE = "story_flow-{project}.dot"

logger = logging.getLogger(__name__)


class GraphSourceError(Exception):
    """Raised when story flow data cannot be fetched or decoded."""


def _is_remote(location: str) -> bool:
    return location.startswith(("http://", "https://"))


class GraphSource:
    """
    Reads the pre-generated story flow data files from a local directory or a web server.

    The project list is returned as a dataframe with canonical `name` and
    `display_name` columns; any further metadata columns are kept as-is.
    """

    def __init__(self, location: str, timeout: float = 30.0, client: Optional[httpx.Client] = None):
        self.location = location
        self.remote = _is_remote(location)
        self._timeout = timeout
        self._client = client

    def _read_bytes(self, filename: str) -> bytes:
        if self.remote:
            return self._fetch(filename)
        path = pathlib.Path(self.location) / filename
        try:
            return path.read_bytes()
        except OSError as exc:
            raise GraphSourceError(f"Unable to read {path}: {exc}") from exc

    def _fetch(self, filename: str) -> bytes:
        url = f"{self.location.rstrip('/')}/{filename}"
        logger.info("Fetching %s", url)
        try:
            if self._client is not None:
                response = self._client.get(url, follow_redirects=True)
            else:
                with httpx.Client(timeout=self._timeout) as client:
                    response = client.get(url, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise GraphSourceError(f"Request for {url} failed with HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise GraphSourceError(f"Request for {url} failed: {exc}") from exc
        return response.content

    def _read_json(self, filename: str) -> Any:
        try:
            return json.loads(self._read_bytes(filename).decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise GraphSourceError(f"{filename} is not valid JSON: {exc}") from exc

    def projects(self) -> pd.DataFrame:
        data = self._read_json(PROJECTS_FILE)
        if not isinstance(data, list) or not all(isinstance(item, dict) and "name" in item for item in data):
            raise GraphSourceError(f"{PROJECTS_FILE} must contain a list of objects with a 'name' field.")
        df = pd.DataFrame(data)
        if df.empty:
            return pd.DataFrame(columns=["name", "display_name"])
        df["name"] = df["name"].astype(str)
        if "quality_display_name" in df.columns:
            df["display_name"] = df["quality_display_name"].fillna(df["name"]).astype(str)
        else:
            df["display_name"] = df["name"]
        return df.reset_index(drop=True)

    def palette(self) -> List[str]:
        data = self._read_json(PALETTE_FILE)
        if not isinstance(data, list):
            raise GraphSourceError(f"{PALETTE_FILE} must contain a list of colours.")
        return [str(colour) for colour in data]

    def states(self) -> Dict[str, str]:
        """Map of border colour to workflow state key, in file order."""
        data = self._read_json(STATES_FILE)
        if not isinstance(data, dict):
            raise GraphSourceError(f"{STATES_FILE} must contain an object mapping colours to states.")
        return {str(colour): str(state) for colour, state in data.items()}

    def graph_text(self, project: str) -> str:
        filename = GRAPH_FILE_TEMPLATE.format(project=project)
        try:
            return self._read_bytes(filename).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise GraphSourceError(f"{filename} is not valid UTF-8: {exc}") from exc
