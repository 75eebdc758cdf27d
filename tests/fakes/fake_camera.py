# tests/fakes/fake_camera.py

import io
import threading
from typing import Optional, Tuple

from PIL import Image

from capture.camera_base import Camera, CameraBackend, CameraDevice, CameraError, CameraPosition

CAMERA_NOT_CONNECTED = "Camera not connected"


def make_jpeg(size: Tuple[int, int] = (16, 12), color=(255, 230, 230)) -> bytes:
    out = io.BytesIO()
    Image.new("RGB", size, color).save(out, format="JPEG")
    return out.getvalue()


class FakeCamera(Camera):
    def __init__(self):
        self.connected = True
        self.running = False
        self.closed = False
        self.start_calls = 0
        self.capture_calls = 0
        self.resolution: Optional[Tuple[int, int]] = None
        self.still = make_jpeg()

        # Set these to hold bring-up or a capture until the test releases it
        self.start_gate: Optional[threading.Event] = None
        self.capture_gate: Optional[threading.Event] = None
        self.capture_started = threading.Event()

    def health_check(self) -> bool:
        return self.connected

    def start_running(self, resolution: Tuple[int, int]) -> None:
        self.start_calls += 1
        if self.start_gate is not None:
            self.start_gate.wait(timeout=5)
        if not self.connected:
            raise CameraError(CAMERA_NOT_CONNECTED)
        self.resolution = resolution
        self.running = True

    def stop_running(self) -> None:
        self.running = False

    def close(self) -> None:
        self.running = False
        self.closed = True

    def get_preview_frame(self) -> bytes:
        if not self.connected:
            raise CameraError(CAMERA_NOT_CONNECTED)
        if not self.running:
            raise CameraError("Preview not running")
        return make_jpeg((8, 6))

    def capture_still(self) -> bytes:
        self.capture_calls += 1
        self.capture_started.set()
        if self.capture_gate is not None:
            self.capture_gate.wait(timeout=5)
        if not self.connected:
            raise CameraError(CAMERA_NOT_CONNECTED)
        return self.still


class FakeBackend(CameraBackend):
    def __init__(self, camera: Optional[FakeCamera] = None, position=CameraPosition.FRONT):
        self.cameras = {position: camera if camera is not None else FakeCamera()}
        self.fail_open = False
        self.opened = []

    @property
    def camera(self) -> FakeCamera:
        return self.cameras[CameraPosition.FRONT]

    def default_device(self, position: CameraPosition) -> Optional[CameraDevice]:
        if position not in self.cameras:
            return None
        return CameraDevice(device_id=position.name.lower(), name="Fake camera", position=position)

    def open(self, device: CameraDevice) -> Camera:
        if self.fail_open:
            raise CameraError("Device busy")
        camera = self.cameras[device.position]
        camera.closed = False
        self.opened.append(camera)
        return camera
