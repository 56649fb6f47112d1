from __future__ import annotations

import enum
import logging
import math
from typing import Optional

from .graph_filter import FilterResult, filter_graph, validate_count

DEFAULT_MIN_STORIES = 5

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    IDLE = "idle"
    LOADED = "loaded"


class FlowSession:
    """
    Caller-side state for the threshold slider.

    Holds the raw DOT source of the current project together with the running maximum
    returned by the filter, so that threshold changes only refilter the cached source.
    Every project selection hands out a ticket; responses carrying an older ticket are
    ignored.
    """

    def __init__(self, min_stories: int = DEFAULT_MIN_STORIES):
        self.min_stories = validate_count(min_stories, "min_stories")
        self.state = SessionState.IDLE
        self.project: Optional[str] = None
        self.dot_src: Optional[str] = None
        self.max_stories = 0
        self._pending_project: Optional[str] = None
        self._ticket = 0

    def select_project(self, project: str) -> int:
        self._ticket += 1
        self._pending_project = project
        logger.info("Project %s selected (ticket %d).", project, self._ticket)
        return self._ticket

    def is_current(self, ticket: int) -> bool:
        return ticket == self._ticket

    def accept(self, ticket: int, dot_src: str) -> Optional[FilterResult]:
        if not self.is_current(ticket):
            logger.info("Discarding stale graph response (ticket %d, current %d).", ticket, self._ticket)
            return None
        result = filter_graph(dot_src, self.min_stories, 0)
        self.project = self._pending_project
        self.dot_src = dot_src
        self.max_stories = result.max_stories
        self.state = SessionState.LOADED
        logger.info("Loaded story flow for %s (max %d stories).", self.project, self.max_stories)
        return result

    def load(self, project: str, dot_src: str) -> FilterResult:
        result = self.accept(self.select_project(project), dot_src)
        assert result is not None
        return result

    def set_threshold(self, min_stories: int) -> Optional[FilterResult]:
        if self.state is not SessionState.LOADED or self.dot_src is None:
            self.min_stories = validate_count(min_stories, "min_stories")
            return None
        result = filter_graph(self.dot_src, min_stories, self.max_stories)
        self.min_stories = result.min_stories
        self.max_stories = result.max_stories
        return result

    @property
    def slider_maximum(self) -> int:
        # Slider steps are tenths of the busiest edge.
        return int(math.floor(self.max_stories / 10 + 0.5))
