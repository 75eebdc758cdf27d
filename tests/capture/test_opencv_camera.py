import threading

import numpy as np
import pytest

from capture.camera_base import CameraDevice, CameraError, CameraPosition
from capture.capture_config import CaptureConfig
from capture.capture_controller import CaptureSessionController
from capture.opencv_camera import OpenCVBackend, OpenCVCamera
from capture.session import SessionState
from tests.helpers import wait_for


class FakeVideoCapture:
    instances = []
    openable = {0}
    # Most webcam drivers hand out one handle per device
    exclusive = False
    read_gate = None

    def __init__(self, index, api_preference=None):
        self.index = index
        self.released = False
        self.props = {}
        self.frames = True
        FakeVideoCapture.instances.append(self)

    def isOpened(self):
        if self.index not in FakeVideoCapture.openable or self.released:
            return False
        if FakeVideoCapture.exclusive:
            holder = next(c for c in FakeVideoCapture.instances
                          if c.index == self.index and not c.released)
            return holder is self
        return True

    def release(self):
        self.released = True

    def set(self, prop, value):
        self.props[prop] = value
        return True

    def read(self):
        if FakeVideoCapture.read_gate is not None:
            FakeVideoCapture.read_gate.wait(timeout=5)
        if not self.frames:
            return False, None
        return True, np.full((12, 16, 3), 200, dtype=np.uint8)


@pytest.fixture(autouse=True)
def fake_video_capture(monkeypatch):
    FakeVideoCapture.instances = []
    FakeVideoCapture.openable = {0}
    FakeVideoCapture.exclusive = False
    FakeVideoCapture.read_gate = None
    monkeypatch.setattr("capture.opencv_camera.cv2.VideoCapture", FakeVideoCapture)
    return FakeVideoCapture


def test_backend_returns_front_device_without_opening_it():
    backend = OpenCVBackend()

    device = backend.default_device(CameraPosition.FRONT)

    assert device == CameraDevice(device_id="0", name="Camera 0", position=CameraPosition.FRONT)
    assert FakeVideoCapture.instances == []


def test_backend_returns_none_for_unmapped_position():
    backend = OpenCVBackend(positions={CameraPosition.FRONT: 5})

    assert backend.default_device(CameraPosition.BACK) is None


def test_dead_index_fails_at_bring_up():
    backend = OpenCVBackend(positions={CameraPosition.FRONT: 5})
    camera = backend.open(backend.default_device(CameraPosition.FRONT))

    with pytest.raises(CameraError, match="could not be opened"):
        camera.start_running((640, 480))


def test_stop_then_start_on_an_exclusive_device_runs_again():
    FakeVideoCapture.exclusive = True
    controller = CaptureSessionController(OpenCVBackend(), config=CaptureConfig(preview_interval=0.01))
    controller.start().result(timeout=1)
    wait_for(lambda: controller.get_status()["hardware_ready"])

    # Hold the session worker inside a capture so the release stays queued
    FakeVideoCapture.read_gate = threading.Event()
    photo = controller.capture_photo()
    wait_for(lambda: controller.get_status()["pending_captures"] == 0)

    controller.stop()
    restarted = controller.start()

    assert restarted.result(timeout=1) == SessionState.RUNNING
    FakeVideoCapture.read_gate.set()
    assert photo.result(timeout=2).data[:2] == b"\xff\xd8"
    wait_for(lambda: controller.get_status()["hardware_ready"])
    assert len([c for c in FakeVideoCapture.instances if not c.released]) == 1
    controller.shutdown()


def test_backend_open_rejects_foreign_device_ids():
    backend = OpenCVBackend()

    with pytest.raises(CameraError, match="Not an OpenCV device"):
        backend.open(CameraDevice(device_id="front", name="x", position=CameraPosition.FRONT))


def test_open_input_raises_when_device_does_not_open():
    camera = OpenCVCamera(3)

    with pytest.raises(CameraError, match="could not be opened"):
        camera.open_input()
    assert FakeVideoCapture.instances[0].released


def test_start_running_sets_resolution_and_reads_first_frame():
    camera = OpenCVCamera(0)

    camera.start_running((640, 480))

    capture = FakeVideoCapture.instances[-1]
    assert sorted(capture.props.values()) == [480, 640]
    assert camera.health_check() is True


def test_start_running_fails_without_frames():
    camera = OpenCVCamera(0)
    camera.open_input()
    FakeVideoCapture.instances[-1].frames = False

    with pytest.raises(CameraError, match="did not deliver a frame"):
        camera.start_running((640, 480))


def test_capture_still_returns_jpeg_bytes():
    camera = OpenCVCamera(0)
    camera.start_running((640, 480))

    data = camera.capture_still()

    assert data[:2] == b"\xff\xd8"
    assert camera.get_preview_frame()[:2] == b"\xff\xd8"


def test_capture_before_running_raises():
    camera = OpenCVCamera(0)

    with pytest.raises(CameraError, match="not running"):
        camera.capture_still()


def test_stop_running_releases_and_is_repeatable():
    camera = OpenCVCamera(0)
    camera.start_running((640, 480))

    camera.stop_running()
    camera.close()

    assert FakeVideoCapture.instances[-1].released
    assert camera.health_check() is False
