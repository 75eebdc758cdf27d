"""
Flask application for the fill light camera UI and API.

Page visibility drives the camera: the page posts /camera/start when it is
shown and /camera/stop when it is hidden.
"""
import io
import logging
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Optional

from flask import Flask, Response, jsonify, request, render_template, send_file

from capture.authorization import CameraAuthorization, GrantedAuthorization, PromptAuthorization
from capture.camera_base import CameraBackend
from capture.capture_config import CaptureConfig
from capture.capture_controller import CaptureSessionController
from capture.capture_errors import (
    CaptureError,
    CaptureFailed,
    DeviceUnavailable,
    PermissionDenied,
    SessionNotReady,
)
from capture.photo_library import DirectoryPhotoLibrary
from imaging.fill_light import FillLightSettings, render_panel
from imaging.preview_frame import prepare_preview
from imaging.render_errors import RenderError

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    SessionNotReady: (409, "not_ready"),
    PermissionDenied: (403, "permission_denied"),
    DeviceUnavailable: (503, "camera_unavailable"),
    CaptureFailed: (500, "capture_failed"),
}


def _error_response(error: CaptureError):
    status, code = ERROR_STATUS.get(type(error), (500, "camera_error"))
    return jsonify({"ok": False, "error": code, "message": str(error)}), status


def create_app(
        backend: Optional[CameraBackend] = None,
        authorization: Optional[CameraAuthorization] = None,
        config: Optional[dict] = None,
):
    app = Flask(__name__)
    app.config.from_mapping(config or {})
    capture_config = CaptureConfig.from_mapping(app.config)

    if backend is None:
        # Imported lazily so the app can be built without OpenCV installed
        from capture.opencv_camera import OpenCVBackend
        backend = OpenCVBackend(positions=capture_config.positions())

    if authorization is None:
        authorization = GrantedAuthorization()

    controller = CaptureSessionController(
        backend=backend,
        authorization=authorization,
        library=DirectoryPhotoLibrary(capture_config.library_root),
        config=capture_config,
    )
    app.controller = controller
    app.fill_light = FillLightSettings()

    @app.route("/", methods=["GET"])
    def index():
        return render_template("index.html", settings=app.fill_light.to_dict())

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify(controller.get_health().to_dict())

    @app.route("/status", methods=["GET"])
    def status():
        data = app.controller.get_status()
        data["permission_prompt"] = (
            isinstance(authorization, PromptAuthorization) and authorization.prompt_pending
        )
        return jsonify(data)

    @app.route("/camera/start", methods=["POST"])
    def camera_start():
        future = app.controller.start()
        if not future.done():
            return jsonify({"ok": True, "awaiting_permission": True}), 202
        if future.cancelled():
            return jsonify({"ok": False, "error": "cancelled"}), 409

        error = future.exception()
        if error is not None:
            return _error_response(error)
        return jsonify({"ok": True, "state": future.result().name})

    @app.route("/camera/stop", methods=["POST"])
    def camera_stop():
        app.controller.stop()
        return jsonify({"ok": True, "state": app.controller.state.name})

    @app.route("/permission", methods=["POST"])
    def permission():
        if not isinstance(authorization, PromptAuthorization):
            return jsonify({"ok": False, "error": "no_prompt"}), 400

        data = request.get_json(silent=True) or {}
        authorization.answer(bool(data.get("granted", False)))
        return jsonify({"ok": True, "state": app.controller.state.name})

    @app.route("/capture", methods=["POST"])
    def capture():
        try:
            future = app.controller.capture_photo()
        except SessionNotReady as e:
            return _error_response(e)

        try:
            photo = future.result(timeout=capture_config.capture_timeout)
        except FutureTimeoutError:
            return jsonify({"ok": False, "error": "capture_timeout"}), 504
        except CaptureError as e:
            return _error_response(e)

        return jsonify({
            "ok": True,
            "request_id": photo.request_id,
            "width": photo.size[0],
            "height": photo.size[1],
        })

    @app.route("/preview", methods=["GET"])
    def preview():
        frame = app.controller.get_preview_frame()
        if not frame:
            return "", 204
        try:
            frame = prepare_preview(frame, app.fill_light)
        except RenderError as e:
            logger.debug("Serving unmirrored preview: %s", e)
        return Response(frame, mimetype="image/jpeg")

    @app.route("/settings", methods=["GET"])
    def get_settings():
        return jsonify(app.fill_light.to_dict())

    @app.route("/settings", methods=["POST"])
    def update_settings():
        data = request.get_json(silent=True) or {}
        try:
            app.fill_light = app.fill_light.updated(data)
        except (ValueError, TypeError) as e:
            return jsonify({"ok": False, "error": "invalid_settings", "message": str(e)}), 400
        return jsonify(app.fill_light.to_dict())

    @app.route("/panel.png", methods=["GET"])
    def panel():
        width = request.args.get("w", default=64, type=int)
        height = request.args.get("h", default=64, type=int)
        try:
            img = render_panel(app.fill_light, (width, height))
        except ValueError as e:
            return jsonify({"ok": False, "error": "invalid_size", "message": str(e)}), 400

        out = io.BytesIO()
        img.save(out, format="PNG")
        out.seek(0)
        return send_file(out, mimetype="image/png")

    return app
