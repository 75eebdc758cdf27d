class CaptureError(Exception):
    """Base class for everything the capture core reports to its callers."""


class DeviceUnavailable(CaptureError):
    """No matching camera hardware, or the device input could not be opened."""


class PermissionDenied(CaptureError):
    """Camera access was not granted."""


class SessionNotReady(CaptureError):
    """A capture was requested while the session is not running."""


class CaptureFailed(CaptureError):
    """The hardware or the encoder failed during a still capture."""


class PersistFailed(CaptureError):
    """Saving a captured photo to the library failed."""
