import logging
import sys

from PyQt6.QtCore import QTimer
from PyQt6.QtGui import QAction
from PyQt6.QtWidgets import (
    QApplication,
    QDoubleSpinBox,
    QFileDialog,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QMessageBox,
    QProgressBar,
    QSpinBox,
    QToolBar,
    QWidget,
)

from .canvas_widget import CanvasWidget
from .controller import MosaicController, RunState
from .errors import MosaicError
from .events import FrameEvent

logger = logging.getLogger(__name__)

PREVIEW_PIXELS = 256
OUTPUT_PIXELS = 512


class MainWindow(QMainWindow):
    def __init__(self):
        super().__init__()
        self.controller = MosaicController()
        self._timer = QTimer(self)
        self._timer.timeout.connect(self._tick)
        self._init_ui()

    def _init_ui(self):
        self.setWindowTitle("Voronoi Mosaic")

        central = QWidget()
        layout = QHBoxLayout(central)

        self.canvasSource = CanvasWidget(
            get_image=self.controller.source_preview,
            title="Source",
            on_hover=self._hover_source,
        )
        self.canvasTarget = CanvasWidget(
            get_image=self.controller.target_preview,
            title="Target",
            on_hover=self._hover_target,
        )
        self.canvasOut = CanvasWidget(
            get_image=lambda: self.controller.frame,
            title="Mosaic",
        )

        layout.addWidget(self.canvasSource)
        layout.addWidget(self.canvasTarget)
        layout.addWidget(self.canvasOut)

        self.setCentralWidget(central)

        self._progress = QProgressBar()
        self._progress.setRange(0, 1000)
        self._progress.setFixedWidth(200)
        self.statusBar().addPermanentWidget(self._progress)

        self._build_toolbar()
        self._build_menu()
        self._update_actions()
        self._update_status()

    def _build_menu(self):
        menubar = self.menuBar()
        file_menu = menubar.addMenu("&File")
        run_menu = menubar.addMenu("&Run")

        act_source = QAction("Load source image...", self)
        act_source.triggered.connect(self._load_source)
        file_menu.addAction(act_source)

        act_target = QAction("Load target image...", self)
        act_target.triggered.connect(self._load_target)
        file_menu.addAction(act_target)

        file_menu.addSeparator()

        act_save_frame = QAction("Save frame as PNG...", self)
        act_save_frame.triggered.connect(self._save_frame)
        file_menu.addAction(act_save_frame)

        act_export = QAction("Export animation...", self)
        act_export.triggered.connect(self._export_animation)
        file_menu.addAction(act_export)

        file_menu.addSeparator()

        act_save_perm = QAction("Save permutation...", self)
        act_save_perm.triggered.connect(self._save_perm)
        file_menu.addAction(act_save_perm)

        act_load_perm = QAction("Load permutation...", self)
        act_load_perm.triggered.connect(self._load_perm)
        file_menu.addAction(act_load_perm)

        file_menu.addSeparator()

        act_quit = QAction("Quit", self)
        act_quit.triggered.connect(self.close)
        file_menu.addAction(act_quit)

        run_menu.addAction(self._act_run)
        run_menu.addAction(self._act_replay)
        run_menu.addAction(self._act_stop)

        self._act_save_frame = act_save_frame
        self._act_export = act_export
        self._act_save_perm = act_save_perm

    def _spin(self, lo: int, hi: int, value: int, step: int = 1) -> QSpinBox:
        spin = QSpinBox()
        spin.setRange(lo, hi)
        spin.setSingleStep(step)
        spin.setValue(value)
        return spin

    def _build_toolbar(self):
        toolbar = QToolBar("Parameters", self)
        self.addToolBar(toolbar)
        s = self.controller.settings

        act_run = QAction("Play", self)
        act_run.setShortcut("Ctrl+R")
        act_run.triggered.connect(self._run)
        act_replay = QAction("Replay", self)
        act_replay.setToolTip("Animate again with the current permutation")
        act_replay.triggered.connect(self._replay)
        act_stop = QAction("Stop", self)
        act_stop.setShortcut("Esc")
        act_stop.triggered.connect(self._stop)
        toolbar.addAction(act_run)
        toolbar.addAction(act_replay)
        toolbar.addAction(act_stop)
        self._act_run = act_run
        self._act_replay = act_replay
        self._act_stop = act_stop

        toolbar.addSeparator()
        toolbar.addWidget(QLabel("Size:"))
        self._side_spin = self._spin(8, s.max_side, s.side, 8)
        toolbar.addWidget(self._side_spin)

        toolbar.addWidget(QLabel("Iterations:"))
        self._iters_spin = self._spin(0, 10_000_000, s.iterations, 10_000)
        toolbar.addWidget(self._iters_spin)

        toolbar.addWidget(QLabel("Proximity:"))
        self._prox_spin = QDoubleSpinBox()
        self._prox_spin.setDecimals(3)
        self._prox_spin.setRange(0.0, 1.0)
        self._prox_spin.setSingleStep(0.005)
        self._prox_spin.setValue(s.proximity)
        toolbar.addWidget(self._prox_spin)

        toolbar.addWidget(QLabel("Edge weight:"))
        self._alpha_spin = QDoubleSpinBox()
        self._alpha_spin.setDecimals(2)
        self._alpha_spin.setRange(0.0, 50.0)
        self._alpha_spin.setSingleStep(0.5)
        self._alpha_spin.setValue(s.edge_alpha)
        toolbar.addWidget(self._alpha_spin)

        toolbar.addWidget(QLabel("Frames:"))
        self._frames_spin = self._spin(1, 10_000, s.frames, 10)
        toolbar.addWidget(self._frames_spin)

        toolbar.addWidget(QLabel("FPS:"))
        self._fps_spin = self._spin(1, 120, s.fps)
        toolbar.addWidget(self._fps_spin)

        act_anneal = QAction("Anneal", self)
        act_anneal.setCheckable(True)
        act_anneal.setChecked(s.anneal)
        toolbar.addAction(act_anneal)
        self._act_anneal = act_anneal

    def _apply_parameters(self):
        self.controller.update_settings(
            side=self._side_spin.value(),
            iterations=self._iters_spin.value(),
            proximity=self._prox_spin.value(),
            edge_alpha=self._alpha_spin.value(),
            frames=self._frames_spin.value(),
            fps=self._fps_spin.value(),
            anneal=self._act_anneal.isChecked(),
        )

    def _start(self, reuse_permutation: bool):
        try:
            self._apply_parameters()
            self.controller.start(reuse_permutation=reuse_permutation)
        except (MosaicError, ValueError, OSError) as exc:
            self._show_error(exc)
            return
        self.canvasOut.fit_to(OUTPUT_PIXELS)
        self.canvasSource.fit_to(PREVIEW_PIXELS)
        self.canvasTarget.fit_to(PREVIEW_PIXELS)
        self._timer.start(0)
        self._update_actions()
        self._update_status()

    def _run(self):
        self._start(reuse_permutation=False)

    def _replay(self):
        self._start(reuse_permutation=True)

    def _stop(self):
        self.controller.stop()
        self._timer.stop()
        self._update_actions()
        self._update_status()

    def _tick(self):
        try:
            event = self.controller.advance()
        except MosaicError as exc:
            self._timer.stop()
            self._show_error(exc)
            self._update_actions()
            return
        if event is None:
            self._timer.stop()
        elif isinstance(event, FrameEvent):
            # animation runs at the requested rate; assignment events as fast as they come
            self._timer.setInterval(int(1000 / self.controller.settings.fps))
            self.canvasOut.update()
        self._update_actions()
        self._update_status()

    def _show_error(self, exc: Exception):
        logger.error("%s", exc)
        self.statusBar().showMessage(str(exc))
        QMessageBox.warning(self, "Voronoi Mosaic", str(exc))

    def _load_source(self):
        path, _ = QFileDialog.getOpenFileName(self, "Load source image", "", "Images (*.png *.jpg *.jpeg)")
        if path:
            self._apply_parameters()
            self.controller.load_source(path)
            self.canvasSource.fit_to(PREVIEW_PIXELS)
            self.canvasOut.fit_to(OUTPUT_PIXELS)
            self.canvasSource.update()
            self.canvasOut.update()
            self._update_actions()
            self._update_status()

    def _load_target(self):
        path, _ = QFileDialog.getOpenFileName(self, "Load target image", "", "Images (*.png *.jpg *.jpeg)")
        if path:
            self._apply_parameters()
            self.controller.load_target(path)
            self.canvasTarget.fit_to(PREVIEW_PIXELS)
            self.canvasTarget.update()
            self._update_actions()
            self._update_status()

    def _save_frame(self):
        path, _ = QFileDialog.getSaveFileName(self, "Save frame", "mosaic.png", "PNG (*.png)")
        if path:
            self.controller.save_frame(path)

    def _export_animation(self):
        path, _ = QFileDialog.getSaveFileName(
            self, "Export animation", "mosaic.gif", "GIF (*.gif);;WebP (*.webp)"
        )
        if path:
            self.controller.export_animation(path)

    def _save_perm(self):
        path, _ = QFileDialog.getSaveFileName(self, "Save permutation", "", "NumPy files (*.npy)")
        if path:
            self.controller.save_permutation(path)

    def _load_perm(self):
        path, _ = QFileDialog.getOpenFileName(self, "Load permutation", "", "NumPy files (*.npy)")
        if path:
            try:
                self.controller.load_permutation(path)
            except (MosaicError, ValueError, OSError) as exc:
                self._show_error(exc)
                return
            self._side_spin.setValue(self.controller.settings.side)
            self._update_actions()
            self._update_status()

    def _hover_source(self, y: int, x: int):
        self._update_status(y, x, from_canvas="source")

    def _hover_target(self, y: int, x: int):
        self._update_status(y, x, from_canvas="target")

    def _update_actions(self):
        c = self.controller
        running = c.is_running
        ready = c.source is not None and c.target is not None
        self._act_run.setEnabled(ready and not running)
        self._act_replay.setEnabled(ready and not running and c.permutation is not None)
        self._act_stop.setEnabled(running)
        self._act_save_frame.setEnabled(c.frame is not None and not running)
        self._act_export.setEnabled(bool(c.recorded) and not running)
        self._act_save_perm.setEnabled(c.permutation is not None)

    def _update_status(self, y: int | None = None, x: int | None = None, from_canvas: str | None = None):
        c = self.controller
        self._progress.setValue(int(1000 * c.progress()))
        coord_desc = ""
        if from_canvas and y is not None and x is not None and c.permutation is not None:
            if from_canvas == "source":
                yB, xB = c.permutation.map_coords_src_to_dst(y, x)
                coord_desc = f" | source({y},{x}) -> target({yB},{xB})"
            elif from_canvas == "target":
                yA, xA = c.permutation.map_coords_dst_to_src(y, x)
                coord_desc = f" | target({y},{x}) <- source({yA},{xA})"
        if c.state == RunState.IDLE and (c.source is None or c.target is None):
            text = "Load a source and a target image, then press Play."
        else:
            text = c.status_text()
        self.statusBar().showMessage(f"{text}{coord_desc}")


def main():
    logging.basicConfig(format="%(levelname)s: %(message)s", level=logging.INFO)
    app = QApplication(sys.argv)
    win = MainWindow()
    win.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
