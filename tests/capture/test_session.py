import pytest

from capture.camera_base import CameraDevice, CameraPosition
from capture.capture_config import SessionPreset
from capture.session import CaptureSession, ConfigurationError, PhotoOutput, PreviewOutput, SessionState
from tests.fakes.fake_camera import FakeCamera

DEVICE = CameraDevice(device_id="0", name="Front", position=CameraPosition.FRONT)


def test_new_session_is_idle_and_empty():
    session = CaptureSession()

    assert session.state == SessionState.IDLE
    assert session.input is None
    assert session.preview_output is None
    assert session.photo_output is None


def test_changes_outside_configuration_are_rejected():
    session = CaptureSession()

    with pytest.raises(ConfigurationError, match="inside configuration"):
        session.add_input(DEVICE, FakeCamera())
    with pytest.raises(ConfigurationError):
        session.add_output(PhotoOutput())


def test_configuration_attaches_input_outputs_and_preset():
    session = CaptureSession()
    camera = FakeCamera()

    with session.configuration():
        session.add_input(DEVICE, camera)
        session.add_output(PreviewOutput())
        session.add_output(PhotoOutput())
        session.set_preset(SessionPreset.MEDIUM)

    assert session.input is camera
    assert session.device == DEVICE
    assert session.preset == SessionPreset.MEDIUM


def test_only_one_input_and_one_output_of_each_kind():
    session = CaptureSession()

    with session.configuration():
        session.add_input(DEVICE, FakeCamera())
        session.add_output(PhotoOutput())

        assert session.can_add_input() is False
        assert session.can_add_output(PhotoOutput()) is False
        assert session.can_add_output(PreviewOutput()) is True

        with pytest.raises(ConfigurationError):
            session.add_input(DEVICE, FakeCamera())
        with pytest.raises(ConfigurationError):
            session.add_output(PhotoOutput())


def test_failed_configuration_restores_previous_setup():
    session = CaptureSession()
    camera = FakeCamera()
    with session.configuration():
        session.add_input(DEVICE, camera)

    with pytest.raises(RuntimeError, match="half way"):
        with session.configuration():
            session.remove_input()
            session.add_output(PhotoOutput())
            raise RuntimeError("half way")

    assert session.input is camera
    assert session.photo_output is None


def test_nested_configuration_is_rejected():
    session = CaptureSession()

    with session.configuration():
        with pytest.raises(ConfigurationError, match="already in progress"):
            with session.configuration():
                pass

    # Lock released again afterwards
    with session.configuration():
        session.add_output(PreviewOutput())


def test_preview_output_keeps_latest_frame():
    output = PreviewOutput()
    assert output.get_frame() is None

    output.set_frame(b"one")
    output.set_frame(b"two")

    assert output.get_frame() == b"two"


def test_photo_output_counts_requests():
    camera = FakeCamera()
    output = PhotoOutput()

    assert output.capture(camera) == camera.still
    assert output.requests_issued == 1
    assert camera.capture_calls == 1
