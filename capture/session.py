"""
Capture session: one device input, one preview output, one photo output.

Inputs and outputs only change inside `configuration()`. A failure inside the
bracket restores what was attached before it, so a half-configured session is
never visible.
"""
import threading
from contextlib import contextmanager
from enum import Enum, auto
from typing import Iterator, Optional

from capture.camera_base import Camera, CameraDevice
from capture.capture_config import SessionPreset


class SessionState(Enum):
    IDLE = auto()
    CONFIGURING = auto()
    RUNNING = auto()
    STOPPED = auto()


class ConfigurationError(RuntimeError):
    pass


class PreviewOutput:
    """Sink for preview frames; keeps only the most recent one."""

    def __init__(self):
        self._lock = threading.Lock()
        self._frame: Optional[bytes] = None

    def set_frame(self, frame: Optional[bytes]) -> None:
        with self._lock:
            self._frame = frame

    def get_frame(self) -> Optional[bytes]:
        with self._lock:
            return self._frame


class PhotoOutput:
    """Sink producing one still image per capture request."""

    def __init__(self):
        self.requests_issued = 0

    def capture(self, camera: Camera) -> bytes:
        self.requests_issued += 1
        return camera.capture_still()


class CaptureSession:
    def __init__(self):
        self._config_lock = threading.Lock()
        self._in_configuration = False

        self.state = SessionState.IDLE
        self.preset = SessionPreset.HIGH
        self.device: Optional[CameraDevice] = None
        self.input: Optional[Camera] = None
        self.preview_output: Optional[PreviewOutput] = None
        self.photo_output: Optional[PhotoOutput] = None

    @contextmanager
    def configuration(self) -> Iterator["CaptureSession"]:
        if not self._config_lock.acquire(blocking=False):
            raise ConfigurationError("Session configuration already in progress")

        snapshot = (self.preset, self.device, self.input, self.preview_output, self.photo_output)
        self._in_configuration = True
        try:
            yield self
        except BaseException:
            (self.preset, self.device, self.input,
             self.preview_output, self.photo_output) = snapshot
            raise
        finally:
            self._in_configuration = False
            self._config_lock.release()

    def _require_configuration(self) -> None:
        if not self._in_configuration:
            raise ConfigurationError("Session changes must happen inside configuration()")

    # ---------- Inputs ----------

    def can_add_input(self) -> bool:
        return self.input is None

    def add_input(self, device: CameraDevice, camera: Camera) -> None:
        self._require_configuration()
        if not self.can_add_input():
            raise ConfigurationError("Session already has an input")
        self.device = device
        self.input = camera

    def remove_input(self) -> Optional[Camera]:
        self._require_configuration()
        camera = self.input
        self.device = None
        self.input = None
        return camera

    # ---------- Outputs ----------

    def can_add_output(self, output) -> bool:
        if isinstance(output, PreviewOutput):
            return self.preview_output is None
        if isinstance(output, PhotoOutput):
            return self.photo_output is None
        return False

    def add_output(self, output) -> None:
        self._require_configuration()
        if not self.can_add_output(output):
            raise ConfigurationError(f"Cannot add {type(output).__name__} to session")
        if isinstance(output, PreviewOutput):
            self.preview_output = output
        else:
            self.photo_output = output

    def remove_outputs(self) -> None:
        self._require_configuration()
        self.preview_output = None
        self.photo_output = None

    def set_preset(self, preset: SessionPreset) -> None:
        self._require_configuration()
        self.preset = preset
