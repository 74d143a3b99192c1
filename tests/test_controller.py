import numpy as np
import pytest
from PIL import Image

from voronoi_mosaic.controller import MosaicController, RunState
from voronoi_mosaic.events import FrameEvent
from voronoi_mosaic.settings import MosaicSettings


@pytest.fixture
def controller(image_files):
    c = MosaicController(MosaicSettings(side=8, iterations=300, frames=3, progress_interval=100))
    c.load_source(image_files[0])
    c.load_target(image_files[1])
    return c


def test_start_requires_both_images():
    c = MosaicController(MosaicSettings(side=8))
    with pytest.raises(ValueError):
        c.start()


def test_loading_source_shows_preview(controller):
    assert controller.source.shape == (64, 3)
    assert controller.frame.shape == (8, 8, 4)
    assert controller.target_preview().shape == (8, 8, 4)
    assert controller.state == RunState.IDLE


def test_run_to_end(controller):
    controller.start()
    assert controller.state == RunState.ASSIGNING
    frame = controller.run_to_end()
    assert controller.state == RunState.DONE
    assert controller.progress() == 1.0
    assert controller.status_text() == "Done."
    assert frame.shape == (8, 8, 4)
    assert len(controller.recorded) == 3
    assert controller.permutation is not None
    assert controller.permutation.size == 64


def test_state_moves_to_animating_with_permutation(controller):
    controller.start()
    while controller.permutation is None:
        assert controller.advance() is not None
    assert controller.state == RunState.ANIMATING
    assert isinstance(controller.advance(), FrameEvent)


def test_stop_mid_run(controller):
    controller.start()
    controller.advance()
    controller.stop()
    assert controller.state == RunState.STOPPED
    assert controller.advance() is None
    assert not controller.is_running


def test_settings_locked_while_running(controller):
    controller.start()
    with pytest.raises(ValueError):
        controller.update_settings(frames=10)
    controller.stop()
    controller.update_settings(frames=10)
    assert controller.settings.frames == 10


def test_changing_side_resamples_images(controller):
    controller.update_settings(side=4)
    assert controller.source.shape == (16, 3)
    assert controller.target.shape == (16, 3)


def test_replay_reuses_permutation(controller):
    controller.start()
    controller.run_to_end()
    perm = controller.permutation.perm.copy()
    controller.start(reuse_permutation=True)
    assert controller.state == RunState.ANIMATING
    controller.run_to_end()
    assert np.array_equal(controller.permutation.perm, perm)
    assert len(controller.recorded) == 3


def test_save_outputs(controller, tmp_path):
    controller.start()
    controller.run_to_end()

    png = str(tmp_path / "final.png")
    controller.save_frame(png, scale=2)
    with Image.open(png) as im:
        assert im.size == (16, 16)

    gif = str(tmp_path / "mosaic.gif")
    controller.export_animation(gif)
    with Image.open(gif) as im:
        assert im.format == "GIF"

    npy = str(tmp_path / "perm.npy")
    controller.save_permutation(npy)
    other = MosaicController(MosaicSettings(side=4))
    other.load_permutation(npy)
    assert other.settings.side == 8
    assert np.array_equal(other.permutation.perm, controller.permutation.perm)


def test_save_permutation_before_run(controller, tmp_path):
    with pytest.raises(ValueError):
        controller.save_permutation(str(tmp_path / "perm.npy"))
