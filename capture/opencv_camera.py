import logging
import threading
from typing import Dict, Optional, Tuple

import cv2

from capture.camera_base import Camera, CameraBackend, CameraDevice, CameraError, CameraPosition

logger = logging.getLogger(__name__)


class OpenCVCamera(Camera):
    """
    UVC webcam driven through cv2.VideoCapture.

    Every read goes through one lock; OpenCV capture handles are not thread safe.
    """

    JPEG_QUALITY = 95

    def __init__(self, index: int, api_preference: int = cv2.CAP_ANY):
        self.index = index
        self._api_preference = api_preference
        self._io_lock = threading.Lock()
        self._capture: Optional[cv2.VideoCapture] = None

    def open_input(self) -> None:
        with self._io_lock:
            if self._capture is not None:
                return
            capture = cv2.VideoCapture(self.index, self._api_preference)
            if not capture.isOpened():
                capture.release()
                raise CameraError(f"Camera {self.index} could not be opened")
            self._capture = capture

    # ---------- Required interface ----------

    def health_check(self) -> bool:
        with self._io_lock:
            return self._capture is not None and self._capture.isOpened()

    def start_running(self, resolution: Tuple[int, int]) -> None:
        self.open_input()
        width, height = resolution
        with self._io_lock:
            self._capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
            self._capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
            # First read blocks until the sensor delivers; treat it as bring-up.
            ok, _frame = self._capture.read()
        if not ok:
            raise CameraError(f"Camera {self.index} did not deliver a frame")
        logger.info("Camera %s running at %sx%s", self.index, width, height)

    def stop_running(self) -> None:
        with self._io_lock:
            if self._capture is None:
                return
            self._capture.release()
            self._capture = None

    def get_preview_frame(self) -> bytes:
        return self._read_jpeg(quality=80)

    def capture_still(self) -> bytes:
        return self._read_jpeg(quality=self.JPEG_QUALITY)

    def _read_jpeg(self, quality: int) -> bytes:
        with self._io_lock:
            if self._capture is None:
                raise CameraError("Camera is not running")
            ok, frame = self._capture.read()
        if not ok or frame is None:
            raise CameraError(f"Camera {self.index} returned no frame")

        ok, buffer = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
        if not ok:
            raise CameraError("JPEG encoding failed")
        return buffer.tobytes()


class OpenCVBackend(CameraBackend):
    """
    Maps camera positions onto OpenCV device indices.

    Webcams do not report where they face, so positions come from configuration:
    a laptop's built-in camera (index 0) is the front camera by default.

    Lookup never touches the hardware. Many platforms allow one handle per
    device, and the previous session's handle may still be waiting for release
    on the session worker. A camera that does not answer fails at bring-up.
    """

    def __init__(self, positions: Optional[Dict[CameraPosition, int]] = None,
                 api_preference: int = cv2.CAP_ANY):
        self._positions = dict(positions or {CameraPosition.FRONT: 0})
        self._api_preference = api_preference

    def default_device(self, position: CameraPosition) -> Optional[CameraDevice]:
        index = self._positions.get(position)
        if index is None:
            logger.warning("No camera index configured for %s", position.name)
            return None
        return CameraDevice(device_id=str(index), name=f"Camera {index}", position=position)

    def open(self, device: CameraDevice) -> Camera:
        # The handle itself is opened by start_running on the session worker
        try:
            index = int(device.device_id)
        except ValueError as e:
            raise CameraError(f"Not an OpenCV device: {device.device_id}") from e
        return OpenCVCamera(index, api_preference=self._api_preference)
