from __future__ import annotations

import argparse
import logging
import pathlib
import sys
from typing import Dict, List, Optional

import pandas as pd
from PyQt6 import QtCore, QtGui, QtSvg, QtSvgWidgets, QtWidgets

from story_flow.graph_filter import FilterResult
from story_flow.graph_source import GraphSource, GraphSourceError
from story_flow.render import RenderError, render_svg
from story_flow.session import FlowSession

DEFAULT_DATA_LOCATION = "data"
LOG_NAME = "story_flow_app"
LOG_FILE_PATH = pathlib.Path.cwd() / "story_flow_app.log"


def configure_logging() -> logging.Logger:
    logger = logging.getLogger(LOG_NAME)
    if not logger.handlers:
        logger.setLevel(logging.INFO)
        file_handler = logging.FileHandler(LOG_FILE_PATH, encoding="utf-8")
        formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        logger.propagate = False
        # Library modules log under the story_flow package; route them to the same file.
        package_logger = logging.getLogger("story_flow")
        package_logger.setLevel(logging.INFO)
        package_logger.addHandler(file_handler)
        logger.info("Logging initialised. Writing to %s", LOG_FILE_PATH)
    return logger


BASE_LOGGER = configure_logging()


class ProjectTableModel(QtCore.QAbstractTableModel):
    COLUMNS = ("name", "display_name")
    HEADERS = ("Project", "Display name")

    def __init__(self, dataframe: Optional[pd.DataFrame] = None):
        super().__init__()
        self._dataframe = dataframe if dataframe is not None else pd.DataFrame(columns=list(self.COLUMNS))

    def set_dataframe(self, dataframe: pd.DataFrame):
        self.beginResetModel()
        self._dataframe = dataframe[list(self.COLUMNS)].copy().reset_index(drop=True)
        self.endResetModel()

    def project_at(self, row: int) -> Optional[str]:
        if row < 0 or row >= len(self._dataframe.index):
            return None
        return str(self._dataframe.iat[row, 0])

    def rowCount(self, parent: QtCore.QModelIndex = QtCore.QModelIndex()) -> int:  # type: ignore[override]
        if parent.isValid():
            return 0
        return len(self._dataframe.index)

    def columnCount(self, parent: QtCore.QModelIndex = QtCore.QModelIndex()) -> int:  # type: ignore[override]
        if parent.isValid():
            return 0
        return len(self.COLUMNS)

    def data(self, index: QtCore.QModelIndex, role: int = QtCore.Qt.ItemDataRole.DisplayRole):  # type: ignore[override]
        if not index.isValid() or role not in (QtCore.Qt.ItemDataRole.DisplayRole, QtCore.Qt.ItemDataRole.ToolTipRole):
            return None
        value = self._dataframe.iat[index.row(), index.column()]
        if pd.isna(value):
            return ""
        return str(value)

    def headerData(  # type: ignore[override]
        self, section: int, orientation: QtCore.Qt.Orientation, role: int = QtCore.Qt.ItemDataRole.DisplayRole
    ):
        if role != QtCore.Qt.ItemDataRole.DisplayRole:
            return None
        if orientation == QtCore.Qt.Orientation.Horizontal:
            try:
                return self.HEADERS[section]
            except IndexError:
                return None
        return str(section + 1)


class _FetchSignals(QtCore.QObject):
    finished = QtCore.pyqtSignal(int, str)
    failed = QtCore.pyqtSignal(int, str)


class GraphFetchTask(QtCore.QRunnable):
    """Fetches one project's DOT source off the UI thread, tagged with the session ticket."""

    def __init__(self, source: GraphSource, project: str, ticket: int):
        super().__init__()
        self.source = source
        self.project = project
        self.ticket = ticket
        self.signals = _FetchSignals()

    def run(self) -> None:
        try:
            dot_src = self.source.graph_text(self.project)
        except Exception as exc:  # pylint: disable=broad-except
            self.signals.failed.emit(self.ticket, str(exc))
            return
        self.signals.finished.emit(self.ticket, dot_src)


class FlowGraphView(QtWidgets.QGraphicsView):
    """Scene holding the rendered story flow SVG, with ctrl+wheel zoom and drag panning."""

    ZOOM_STEP = 1.18

    def __init__(self, parent: Optional[QtWidgets.QWidget] = None):
        super().__init__(parent)
        self.setRenderHints(QtGui.QPainter.RenderHint.Antialiasing | QtGui.QPainter.RenderHint.TextAntialiasing)
        self.setFrameShape(QtWidgets.QFrame.Shape.NoFrame)
        self.setDragMode(QtWidgets.QGraphicsView.DragMode.ScrollHandDrag)
        self.setTransformationAnchor(QtWidgets.QGraphicsView.ViewportAnchor.AnchorUnderMouse)

        self._scene = QtWidgets.QGraphicsScene(self)
        self.setScene(self._scene)
        self._renderer: Optional[QtSvg.QSvgRenderer] = None
        self._svg_item: Optional[QtSvgWidgets.QGraphicsSvgItem] = None

        self._placeholder = QtWidgets.QGraphicsTextItem("Select a project to see its story flow.")
        self._placeholder.setFont(QtGui.QFont("Segoe UI", 11))
        self._placeholder.setDefaultTextColor(QtGui.QColor("#9aa5d9"))
        self._scene.addItem(self._placeholder)

    def set_svg(self, svg: bytes) -> None:
        renderer = QtSvg.QSvgRenderer(QtCore.QByteArray(svg))
        if not renderer.isValid():
            raise RenderError("Graphviz produced an SVG document that cannot be displayed.")
        self._scene.clear()
        self._placeholder = None
        self._renderer = renderer
        self._svg_item = QtSvgWidgets.QGraphicsSvgItem()
        self._svg_item.setSharedRenderer(renderer)
        self._scene.addItem(self._svg_item)
        self._scene.setSceneRect(self._svg_item.boundingRect())

    def zoom_by(self, factor: float) -> None:
        self.scale(factor, factor)

    def reset_zoom(self) -> None:
        self.resetTransform()
        if self._svg_item is not None:
            self.fitInView(self._svg_item, QtCore.Qt.AspectRatioMode.KeepAspectRatio)

    def wheelEvent(self, event: QtGui.QWheelEvent) -> None:  # type: ignore[override]
        if event.modifiers() & QtCore.Qt.KeyboardModifier.ControlModifier:
            self.zoom_by(self.ZOOM_STEP if event.angleDelta().y() > 0 else 1 / self.ZOOM_STEP)
            event.accept()
        else:
            super().wheelEvent(event)


def palette_stylesheet(palette: List[str]) -> str:
    """Horizontal low-to-high gradient over the temperature palette colours."""
    if not palette:
        return ""
    if len(palette) == 1:
        return f"background-color: {palette[0]}; border-radius: 4px;"
    last = len(palette) - 1
    stops = ", ".join(f"stop:{index / last:.3f} {colour}" for index, colour in enumerate(palette))
    return f"background: qlineargradient(x1:0, y1:0, x2:1, y2:0, {stops}); border-radius: 4px;"


class StoryFlowApp(QtWidgets.QMainWindow):
    def __init__(self, source: GraphSource):
        super().__init__()
        self.setWindowTitle("Story Flow Explorer")
        self.resize(1280, 860)

        self.logger = BASE_LOGGER.getChild("ui")
        self.logger.info("StoryFlowApp initialising (data from %s).", source.location)

        self.source = source
        self.session = FlowSession()
        self._thread_pool = QtCore.QThreadPool.globalInstance()
        self._pending_tasks: Dict[int, GraphFetchTask] = {}

        self._setup_palette()
        self._apply_theme()
        self._build_ui()
        self.logger.info("User interface initialised. Loading project metadata.")
        self.load_metadata()

    # UI construction -----------------------------------------------------
    def _setup_palette(self) -> None:
        palette = QtGui.QPalette()
        base = QtGui.QColor("#0f111a")
        text = QtGui.QColor("#f4f6ff")

        palette.setColor(QtGui.QPalette.ColorRole.Window, base)
        palette.setColor(QtGui.QPalette.ColorRole.Base, base)
        palette.setColor(QtGui.QPalette.ColorRole.AlternateBase, QtGui.QColor("#161a28"))
        palette.setColor(QtGui.QPalette.ColorRole.Button, QtGui.QColor("#1c2032"))
        palette.setColor(QtGui.QPalette.ColorRole.WindowText, text)
        palette.setColor(QtGui.QPalette.ColorRole.ButtonText, text)
        palette.setColor(QtGui.QPalette.ColorRole.Text, text)
        palette.setColor(QtGui.QPalette.ColorRole.Highlight, QtGui.QColor("#6C83FF"))
        palette.setColor(QtGui.QPalette.ColorRole.HighlightedText, QtGui.QColor("#ffffff"))

        self.setPalette(palette)

    def _apply_theme(self) -> None:
        self.setStyleSheet(
            """
            QWidget {
                background-color: #0f111a;
                color: #f4f6ff;
                font-family: "Segoe UI", "Helvetica Neue", Arial;
                font-size: 12px;
            }
            QGroupBox {
                border: 1px solid rgba(108, 131, 255, 0.25);
                border-radius: 12px;
                margin-top: 16px;
                padding: 18px;
            }
            QGroupBox::title {
                subcontrol-origin: margin;
                left: 14px;
                padding: 0 6px;
                color: #9aa5d9;
                font-weight: 600;
            }
            QTableView {
                background-color: rgba(18, 21, 32, 0.85);
                border: 1px solid rgba(108, 131, 255, 0.2);
                border-radius: 8px;
                selection-background-color: rgba(108, 131, 255, 0.32);
            }
            QLabel#HeaderTitle {
                font-size: 26px;
                font-weight: 700;
            }
            """
        )

    def _build_ui(self) -> None:
        central_widget = QtWidgets.QWidget()
        self.setCentralWidget(central_widget)
        root_layout = QtWidgets.QVBoxLayout(central_widget)
        root_layout.setContentsMargins(24, 24, 24, 24)
        root_layout.setSpacing(18)

        title = QtWidgets.QLabel("Story Flow")
        title.setObjectName("HeaderTitle")
        root_layout.addWidget(title)

        splitter = QtWidgets.QSplitter(QtCore.Qt.Orientation.Horizontal)
        splitter.setChildrenCollapsible(False)
        splitter.addWidget(self._build_controls_panel())
        splitter.addWidget(self._build_graph_panel())
        splitter.setStretchFactor(0, 0)
        splitter.setStretchFactor(1, 1)
        root_layout.addWidget(splitter, stretch=1)

        self.statusBar().showMessage(f"Select a project to begin. Logging to {LOG_FILE_PATH.name}.")

    def _build_controls_panel(self) -> QtWidgets.QWidget:
        container = QtWidgets.QWidget()
        container.setMaximumWidth(360)
        layout = QtWidgets.QVBoxLayout(container)
        layout.setAlignment(QtCore.Qt.AlignmentFlag.AlignTop)

        project_group = QtWidgets.QGroupBox("Projects")
        project_layout = QtWidgets.QVBoxLayout(project_group)
        self.project_model = ProjectTableModel()
        self.project_table = QtWidgets.QTableView()
        self.project_table.setModel(self.project_model)
        self.project_table.setSelectionBehavior(QtWidgets.QAbstractItemView.SelectionBehavior.SelectRows)
        self.project_table.setSelectionMode(QtWidgets.QAbstractItemView.SelectionMode.SingleSelection)
        self.project_table.horizontalHeader().setStretchLastSection(True)
        self.project_table.selectionModel().currentRowChanged.connect(self._on_project_changed)
        project_layout.addWidget(self.project_table)
        layout.addWidget(project_group)

        threshold_group = QtWidgets.QGroupBox("Minimum stories")
        threshold_layout = QtWidgets.QHBoxLayout(threshold_group)
        self.threshold_slider = QtWidgets.QSlider(QtCore.Qt.Orientation.Horizontal)
        self.threshold_slider.setRange(0, max(self.session.min_stories, 1))
        self.threshold_slider.setValue(self.session.min_stories)
        self.threshold_slider.setTracking(False)
        self.threshold_slider.setToolTip("Hide transitions carrying fewer stories")
        self.threshold_slider.sliderMoved.connect(lambda value: self.threshold_output.setText(str(value)))
        self.threshold_slider.valueChanged.connect(self._on_threshold_changed)
        self.threshold_output = QtWidgets.QLabel(str(self.session.min_stories))
        threshold_layout.addWidget(self.threshold_slider, stretch=1)
        threshold_layout.addWidget(self.threshold_output)
        layout.addWidget(threshold_group)

        legend_group = QtWidgets.QGroupBox("States")
        self.legend_layout = QtWidgets.QVBoxLayout(legend_group)
        layout.addWidget(legend_group)

        temperature_group = QtWidgets.QGroupBox("Temperature")
        temperature_layout = QtWidgets.QVBoxLayout(temperature_group)
        self.palette_bar = QtWidgets.QFrame()
        self.palette_bar.setFixedHeight(10)
        temperature_layout.addWidget(self.palette_bar)
        scale_row = QtWidgets.QHBoxLayout()
        scale_row.addWidget(QtWidgets.QLabel("Low"))
        scale_row.addStretch(1)
        scale_row.addWidget(QtWidgets.QLabel("High"))
        temperature_layout.addLayout(scale_row)
        layout.addWidget(temperature_group)
        layout.addStretch(1)

        return container

    def _build_graph_panel(self) -> QtWidgets.QWidget:
        container = QtWidgets.QWidget()
        layout = QtWidgets.QVBoxLayout(container)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(8)

        zoom_row = QtWidgets.QHBoxLayout()
        zoom_row.addWidget(QtWidgets.QLabel("Ctrl + scroll to zoom, drag to pan"))
        zoom_row.addStretch(1)
        self.reset_zoom_button = QtWidgets.QPushButton("Reset zoom")
        self.reset_zoom_button.setToolTip("Fit the whole story flow in view")
        self.reset_zoom_button.clicked.connect(self._on_reset_zoom)
        zoom_row.addWidget(self.reset_zoom_button)
        layout.addLayout(zoom_row)

        self.flow_view = FlowGraphView()
        self.flow_view.setMinimumSize(640, 480)
        layout.addWidget(self.flow_view, stretch=1)
        return container

    def _populate_legend(self, states: Dict[str, str]) -> None:
        for colour, state in states.items():
            chip = QtWidgets.QLabel(state)
            chip.setStyleSheet(f"border: 2px solid {colour}; border-radius: 8px; padding: 2px 8px;")
            self.legend_layout.addWidget(chip)

    # Data loading ---------------------------------------------------------
    def load_metadata(self) -> None:
        try:
            projects = self.source.projects()
            states = self.source.states()
            palette = self.source.palette()
        except GraphSourceError as exc:
            self.logger.exception("Failed to load project metadata.")
            self._show_error(f"Failed to load project metadata: {exc}")
            return
        self.project_model.set_dataframe(projects)
        self._populate_legend(states)
        self.palette_bar.setStyleSheet(palette_stylesheet(palette))
        self.logger.info("Loaded %d projects and %d states.", len(projects.index), len(states))

    def _on_project_changed(self, current: QtCore.QModelIndex, _previous: QtCore.QModelIndex) -> None:
        project = self.project_model.project_at(current.row())
        if project is None:
            return
        ticket = self.session.select_project(project)
        task = GraphFetchTask(self.source, project, ticket)
        task.signals.finished.connect(self._on_graph_fetched)
        task.signals.failed.connect(self._on_graph_failed)
        self._pending_tasks[ticket] = task
        self.statusBar().showMessage(f"Loading story flow for {project}…")
        self._thread_pool.start(task)

    def _on_graph_fetched(self, ticket: int, dot_src: str) -> None:
        self._pending_tasks.pop(ticket, None)
        try:
            result = self.session.accept(ticket, dot_src)
        except Exception as exc:  # pylint: disable=broad-except
            self.logger.exception("Failed to filter story flow graph.")
            self._show_error(f"Failed to filter story flow: {exc}")
            return
        if result is None:
            return
        self._render(result)
        self.flow_view.reset_zoom()
        self.threshold_slider.blockSignals(True)
        self.threshold_slider.setMaximum(max(self.session.slider_maximum, self.session.min_stories))
        self.threshold_slider.setValue(self.session.min_stories)
        self.threshold_slider.blockSignals(False)
        self.threshold_output.setText(str(self.session.min_stories))
        self.statusBar().showMessage(
            f"Loaded {self.session.project} (busiest transition: {self.session.max_stories} stories).", 5000
        )

    def _on_graph_failed(self, ticket: int, message: str) -> None:
        self._pending_tasks.pop(ticket, None)
        if not self.session.is_current(ticket):
            self.logger.info("Ignoring failure of stale fetch (ticket %d): %s", ticket, message)
            return
        self._show_error(f"Failed to load story flow: {message}")

    def _on_threshold_changed(self, value: int) -> None:
        self.threshold_output.setText(str(value))
        try:
            result = self.session.set_threshold(value)
        except Exception as exc:  # pylint: disable=broad-except
            self.logger.exception("Failed to refilter story flow at %d stories.", value)
            self._show_error(f"Failed to filter story flow: {exc}")
            return
        if result is not None:
            self.logger.info("Threshold changed to %d stories.", value)
            self._render(result)

    def _render(self, result: FilterResult) -> None:
        try:
            svg = render_svg(result.graph)
            self.flow_view.set_svg(svg)
        except RenderError as exc:
            self.logger.exception("Failed to render story flow.")
            self._show_error(str(exc))

    def _on_reset_zoom(self) -> None:
        self.flow_view.reset_zoom()

    # Messaging ------------------------------------------------------------
    def _show_error(self, message: str) -> None:
        self.logger.error(message)
        QtWidgets.QMessageBox.critical(self, "Error", message)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Interactive story flow viewer.")
    parser.add_argument(
        "--data",
        default=DEFAULT_DATA_LOCATION,
        help=f"Directory or http(s) URL holding the story flow data files (default: {DEFAULT_DATA_LOCATION}).",
    )
    return parser.parse_args(argv)


def main() -> None:
    logger = BASE_LOGGER.getChild("runtime")
    args = parse_args(sys.argv[1:])
    logger.info("Starting QApplication event loop.")
    app = QtWidgets.QApplication(sys.argv[:1])
    window = StoryFlowApp(GraphSource(args.data))
    window.show()
    exit_code = app.exec()
    logger.info("Application closed with exit code %s", exit_code)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
