"""
Capture session controller

Single authoritative owner of the camera session.

Goals:
- Callers never block on camera hardware (bring-up, capture, release run on the session worker)
- Permission is checked before any device is bound
- Exactly one completion per capture request, even when the session stops underneath it
- A failed save never turns a good capture into a failure
"""

import logging
import threading
import uuid
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum, auto
from queue import Queue
from typing import Callable, Dict, Optional, Tuple

from capture.authorization import AuthorizationStatus, CameraAuthorization, GrantedAuthorization
from capture.camera_base import Camera, CameraBackend
from capture.capture_config import CaptureConfig
from capture.capture_errors import (
    CaptureFailed,
    DeviceUnavailable,
    PermissionDenied,
    PersistFailed,
    SessionNotReady,
)
from capture.health import (
    CAMERA_INSTRUCTIONS,
    PERMISSION_INSTRUCTIONS,
    HealthCode,
    HealthLevel,
    HealthSource,
    HealthStatus,
)
from capture.photo import CapturedPhoto, decode_photo
from capture.photo_library import PhotoLibrary
from capture.preview_worker import PreviewWorker
from capture.session import CaptureSession, PhotoOutput, PreviewOutput, SessionState

logger = logging.getLogger(__name__)

Dispatch = Callable[[Callable[[], None]], None]
CaptureCompletion = Callable[["Future[CapturedPhoto]"], None]


def _call_inline(fn: Callable[[], None]) -> None:
    fn()


class CommandType(Enum):
    START_RUNNING = auto()
    CAPTURE_PHOTO = auto()
    STOP_RUNNING = auto()
    SHUTDOWN = auto()


class Command:
    def __init__(self, command_type, payload=None):
        self.command_type = command_type
        self.payload = payload or {}


@dataclass
class CaptureRequest:
    request_id: str
    future: "Future[CapturedPhoto]"
    completion: Optional[CaptureCompletion] = None


class CaptureSessionController:
    # How long preview must be failing before surfacing an error
    PREVIEW_ERROR_AFTER = 2.0  # seconds

    def __init__(
            self,
            backend: CameraBackend,
            authorization: Optional[CameraAuthorization] = None,
            library: Optional[PhotoLibrary] = None,
            config: Optional[CaptureConfig] = None,
            dispatch: Optional[Dispatch] = None,
            on_permission_denied: Optional[Callable[[], None]] = None,
    ):
        self.backend = backend
        self.authorization = authorization or GrantedAuthorization()
        self.library = library
        self.config = config or CaptureConfig()

        # Completions and UI alerts go through here (the UI-owning context)
        self._dispatch = dispatch or _call_inline
        self._on_permission_denied = on_permission_denied

        # Session state
        self._state_lock = threading.RLock()
        self.session = CaptureSession()
        self._generation = 0
        self._hardware_ready = False
        self._pending_start: Optional[Future] = None
        self._queued_captures: Dict[str, CaptureRequest] = {}

        # Session worker
        self.command_queue: Queue = Queue()
        self._thread: Optional[threading.Thread] = None
        self._worker_running = False

        # Health
        self._health_lock = threading.Lock()
        self._health_status = HealthStatus.ok()
        self._health_source: Optional[HealthSource] = None

        self._preview_worker = PreviewWorker(controller=self)

    # ---------- Public API ----------

    @property
    def state(self) -> SessionState:
        with self._state_lock:
            return self.session.state

    def start(self) -> "Future[SessionState]":
        """
        Bring the session up.

        The returned future resolves to RUNNING, or fails with PermissionDenied
        or DeviceUnavailable. It is cancelled if stop() is called while the user
        is still answering the access prompt.
        """
        with self._state_lock:
            if self.session.state == SessionState.RUNNING:
                return _resolved(SessionState.RUNNING)
            if self._pending_start is not None:
                return self._pending_start

            if self.session.state == SessionState.STOPPED:
                self.session.state = SessionState.IDLE
                logger.info("Session restarting")

            future: Future = Future()
            self._pending_start = future

        self._reset_health()
        status = self.authorization.status()

        if status == AuthorizationStatus.AUTHORIZED:
            self._configure_and_run(future)
        elif status == AuthorizationStatus.NOT_DETERMINED:
            logger.info("Requesting camera access")
            self.authorization.request_access(
                lambda granted: self._on_access_answer(future, granted)
            )
        else:
            # DENIED, RESTRICTED and anything unrecognized
            self._deny(future, status)

        return future

    def stop(self) -> None:
        camera: Optional[Camera] = None

        with self._state_lock:
            pending, self._pending_start = self._pending_start, None
            if self.session.state != SessionState.RUNNING:
                if pending is not None:
                    pending.cancel()
                    logger.info("Start cancelled while waiting for camera access")
                return

            self._generation += 1
            with self.session.configuration() as session:
                camera = session.remove_input()
                session.remove_outputs()
            self.session.state = SessionState.STOPPED
            self._hardware_ready = False

            queued = list(self._queued_captures.values())
            self._queued_captures.clear()

        logger.info("Session stopped")
        self._preview_worker.stop()

        for request in queued:
            self._complete_capture(
                request, error=CaptureFailed("Session stopped before the photo was taken")
            )

        if camera is not None:
            self.command_queue.put(Command(CommandType.STOP_RUNNING, {"camera": camera}))

    def capture_photo(self, completion: Optional[CaptureCompletion] = None) -> "Future[CapturedPhoto]":
        """
        Take one still photo.

        Raises SessionNotReady right away unless the session is running. Otherwise
        the returned future (and `completion`, if given) is resolved exactly once.
        """
        with self._state_lock:
            if self.session.state != SessionState.RUNNING or self.session.photo_output is None:
                raise SessionNotReady(
                    f"Cannot take a photo while the session is {self.session.state.name}"
                )

            future: Future = Future()
            # Moves the future out of PENDING so callers cannot cancel it
            future.set_running_or_notify_cancel()
            request = CaptureRequest(request_id=uuid.uuid4().hex, future=future, completion=completion)
            self._queued_captures[request.request_id] = request

        self.command_queue.put(
            Command(CommandType.CAPTURE_PHOTO, {"request_id": request.request_id})
        )
        return future

    def shutdown(self, timeout: float = 2.0) -> None:
        """
        Stop the session and let the session worker exit.

        The exit request is queued behind the camera release, so the device is
        closed even when a capture is still in flight.
        """
        self.stop()
        with self._state_lock:
            thread = self._thread
            if thread is None:
                return
            self._worker_running = False
            self.command_queue.put(Command(CommandType.SHUTDOWN))
        thread.join(timeout=timeout)

    def get_status(self) -> dict:
        with self._state_lock:
            return {
                "state": self.session.state.name,
                "running": self.session.state == SessionState.RUNNING,
                "hardware_ready": self._hardware_ready,
                "awaiting_permission": self._pending_start is not None,
                "device": self.session.device.name if self.session.device else None,
                "preset": self.session.preset.name,
                "pending_captures": len(self._queued_captures),
            }

    def get_preview_frame(self) -> Optional[bytes]:
        with self._state_lock:
            output = self.session.preview_output
        if output is None:
            return None
        return output.get_frame()

    def get_health(self) -> HealthStatus:
        with self._health_lock:
            return self._health_status

    # ---------- Start helpers ----------

    def _on_access_answer(self, future: Future, granted: bool) -> None:
        if granted:
            self._configure_and_run(future)
        else:
            self._deny(future, AuthorizationStatus.DENIED)

    def _deny(self, future: Future, status) -> None:
        with self._state_lock:
            if self._pending_start is not future:
                return
            self._pending_start = None
        if not future.set_running_or_notify_cancel():
            return

        logger.warning("Camera access not granted (%s)", getattr(status, "name", status))
        self._set_camera_error(
            HealthCode.CAMERA_PERMISSION_DENIED,
            "Camera access is needed to show the preview",
            source=HealthSource.PERMISSION,
            instructions=PERMISSION_INSTRUCTIONS,
        )
        if self._on_permission_denied is not None:
            self._dispatch(self._on_permission_denied)
        future.set_exception(PermissionDenied("Camera access was not granted"))

    def _configure_and_run(self, future: Future) -> None:
        with self._state_lock:
            if self._pending_start is not future:
                # stop() won the race while the user was answering
                return
            self._pending_start = None
            if not future.set_running_or_notify_cancel():
                return

            self.session.state = SessionState.CONFIGURING
            try:
                camera = self._bind_device()
            except DeviceUnavailable as e:
                self.session.state = SessionState.IDLE
                logger.warning("Camera unavailable: %s", e)
                self._set_camera_error(
                    HealthCode.CAMERA_NOT_DETECTED,
                    "Front camera not available",
                    source=HealthSource.DEVICE,
                )
                future.set_exception(e)
                return

            self.session.state = SessionState.RUNNING
            self._generation += 1
            self._hardware_ready = False
            device_name = self.session.device.name

            # Queued under the lock so bring-up always precedes any capture request
            self._start_session_worker()
            self.command_queue.put(
                Command(CommandType.START_RUNNING, {"generation": self._generation, "camera": camera})
            )
            self._preview_worker.start()

        logger.info("Session running on %s", device_name)
        future.set_result(SessionState.RUNNING)

    def _bind_device(self) -> Camera:
        try:
            device = self.backend.default_device(self.config.position)
        except Exception as e:
            raise DeviceUnavailable(f"Camera lookup failed: {e}") from e
        if device is None:
            raise DeviceUnavailable(f"No {self.config.position.name.lower()} camera found")

        try:
            camera = self.backend.open(device)
        except Exception as e:
            raise DeviceUnavailable(f"Could not open {device.name}: {e}") from e

        try:
            with self.session.configuration() as session:
                session.add_input(device, camera)
                session.add_output(PreviewOutput())
                session.add_output(PhotoOutput())
                session.set_preset(self.config.preset)
        except Exception as e:
            camera.close()
            raise DeviceUnavailable(f"Could not attach {device.name}: {e}") from e
        return camera

    # ---------- Session worker ----------

    def _start_session_worker(self) -> None:
        with self._state_lock:
            self._worker_running = True
            if self._thread is not None:
                # A worker that has not yet reached its SHUTDOWN keeps serving
                return

            self._thread = threading.Thread(target=self._run, daemon=True)
            self._thread.start()

    def _run(self) -> None:
        while True:
            command = self.command_queue.get()
            if command.command_type == CommandType.SHUTDOWN:
                with self._state_lock:
                    if not self._worker_running:
                        self._thread = None
                        logger.info("Session worker stopped")
                        return
                continue

            try:
                self._handle_command(command)
            except Exception:
                # Keep the worker alive; one bad command must not stop the camera.
                logger.exception("Session worker error")

    def _handle_command(self, command: Command) -> None:
        if command.command_type == CommandType.START_RUNNING:
            self._start_running(command.payload["generation"], command.payload["camera"])

        elif command.command_type == CommandType.CAPTURE_PHOTO:
            self._capture(command.payload["request_id"])

        elif command.command_type == CommandType.STOP_RUNNING:
            command.payload["camera"].close()
            logger.info("Camera released")

    def _start_running(self, generation: int, camera: Camera) -> None:
        with self._state_lock:
            if generation != self._generation:
                logger.info("Skipping bring-up for a session that was already stopped")
                return
            resolution = self.session.preset.resolution

        try:
            camera.start_running(resolution)
        except Exception as e:
            self._abandon_session(generation, camera, e)
            return

        with self._state_lock:
            if generation != self._generation:
                return
            self._hardware_ready = True
        self._mark_ok(HealthSource.DEVICE)

    def _abandon_session(self, generation: int, camera: Camera, error: Exception) -> None:
        with self._state_lock:
            if generation != self._generation:
                return
            self._generation += 1
            with self.session.configuration() as session:
                session.remove_input()
                session.remove_outputs()
            self.session.state = SessionState.IDLE
            self._hardware_ready = False
            queued = list(self._queued_captures.values())
            self._queued_captures.clear()

        logger.error("Camera bring-up failed: %s", error)
        self._preview_worker.stop()
        camera.close()
        self._set_camera_error(
            HealthCode.CAMERA_NOT_DETECTED,
            "Camera could not be started",
            source=HealthSource.DEVICE,
        )
        for request in queued:
            self._complete_capture(request, error=CaptureFailed(f"Camera could not be started: {error}"))

    def _capture(self, request_id: str) -> None:
        with self._state_lock:
            request = self._queued_captures.pop(request_id, None)
            if request is None:
                # Already completed by stop()
                return
            camera = self.session.input
            output = self.session.photo_output

        try:
            data = output.capture(camera)
            photo = decode_photo(data, request_id)
        except CaptureFailed as e:
            self._capture_failed(request, e)
            return
        except Exception as e:
            self._capture_failed(request, CaptureFailed(str(e) or type(e).__name__))
            return

        logger.info("Photo %s captured (%sx%s)", request_id[:8], *photo.size)
        self._mark_ok(HealthSource.CAPTURE)
        self._complete_capture(request, photo=photo)
        self._persist(photo)

    def _capture_failed(self, request: CaptureRequest, error: CaptureFailed) -> None:
        logger.warning("Capture %s failed: %s", request.request_id[:8], error)
        self._set_camera_error(
            HealthCode.CAPTURE_FAILED,
            "The photo could not be taken. Please try again.",
            source=HealthSource.CAPTURE,
        )
        self._complete_capture(request, error=error)

    def _complete_capture(
            self,
            request: CaptureRequest,
            photo: Optional[CapturedPhoto] = None,
            error: Optional[Exception] = None,
    ) -> None:
        if error is not None:
            request.future.set_exception(error)
        else:
            request.future.set_result(photo)

        if request.completion is not None:
            completion, future = request.completion, request.future
            self._dispatch(lambda: completion(future))

    def _persist(self, photo: CapturedPhoto) -> None:
        if self.library is None:
            return
        try:
            path = self.library.save(photo)
        except Exception as e:
            error = e if isinstance(e, PersistFailed) else PersistFailed(str(e) or type(e).__name__)
            logger.warning("Photo %s not saved: %s", photo.request_id[:8], error)
            self._set_warning(HealthCode.PHOTO_NOT_SAVED, "The last photo could not be saved")
            return
        logger.info("Photo %s saved to %s", photo.request_id[:8], path)

    # ---------- Internal helpers used by workers ----------

    def _preview_source(self) -> Tuple[Optional[Camera], Optional[PreviewOutput]]:
        with self._state_lock:
            if self.session.state != SessionState.RUNNING or not self._hardware_ready:
                return None, None
            return self.session.input, self.session.preview_output

    # ---------- Health helpers ----------

    def _reset_health(self) -> None:
        with self._health_lock:
            self._health_source = None
            self._health_status = HealthStatus.ok()

    def _mark_ok(self, source: HealthSource) -> None:
        with self._health_lock:
            # Only the source that raised an error may clear it
            if self._health_source not in (None, source):
                return
            self._health_source = None
            self._health_status = HealthStatus.ok()

    def _set_camera_error(
            self,
            code: HealthCode,
            message: str,
            *,
            source: HealthSource,
            instructions=None,
    ) -> None:
        with self._health_lock:
            if self._health_status.level == HealthLevel.ERROR:
                return
            self._health_source = source
            self._health_status = HealthStatus.error(
                code=code,
                message=message,
                instructions=list(instructions or CAMERA_INSTRUCTIONS),
            )

    def _set_warning(self, code: HealthCode, message: str) -> None:
        with self._health_lock:
            if self._health_status.level == HealthLevel.ERROR:
                return
            self._health_source = HealthSource.LIBRARY
            self._health_status = HealthStatus.warning(code=code, message=message)


def _resolved(value) -> Future:
    future: Future = Future()
    future.set_result(value)
    return future
