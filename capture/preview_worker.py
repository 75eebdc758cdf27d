import logging
import threading
import time
from typing import Optional, TYPE_CHECKING

from capture.health import HealthCode, HealthSource

if TYPE_CHECKING:  # pragma: no cover
    from capture.capture_controller import CaptureSessionController

logger = logging.getLogger(__name__)


class PreviewWorker:
    """
    Polls preview frames while the session is running.

    IMPORTANT:
    - The controller remains the single source of truth for state and health.
    - This worker only reads frames and pushes them into the preview output.
    """

    def __init__(self, controller: "CaptureSessionController"):
        self._controller = controller
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

        # Debounce preview failures so a busy camera during a still capture
        # does not flash an error.
        self._failure_since: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._stop_event is not None and not self._stop_event.is_set()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event = threading.Event()
        self._failure_since = None
        self._thread = threading.Thread(target=self._run, args=(self._stop_event,), daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    def _run(self, stop_event: threading.Event) -> None:
        interval = self._controller.config.preview_interval

        while not stop_event.is_set():
            camera, output = self._controller._preview_source()
            if camera is None:
                # Hardware still coming up
                stop_event.wait(interval)
                continue

            now = time.monotonic()
            try:
                frame = camera.get_preview_frame()
                output.set_frame(frame)
                self._failure_since = None
                self._controller._mark_ok(HealthSource.PREVIEW)

            except Exception as e:
                if self._failure_since is None:
                    self._failure_since = now
                    logger.debug("Preview frame failed: %s", e)

                if (now - self._failure_since) >= self._controller.PREVIEW_ERROR_AFTER:
                    self._controller._set_camera_error(
                        HealthCode.CAMERA_NOT_DETECTED,
                        "Camera preview is not responding",
                        source=HealthSource.PREVIEW,
                    )

            stop_event.wait(interval)
