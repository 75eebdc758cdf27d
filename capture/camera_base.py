from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Tuple


class CameraError(Exception):
    pass


class CameraPosition(Enum):
    FRONT = auto()
    BACK = auto()
    UNSPECIFIED = auto()


@dataclass(frozen=True)
class CameraDevice:
    """A physical camera the backend can bind."""

    device_id: str
    name: str
    position: CameraPosition


class Camera(ABC):
    """
    Device input bound to one physical camera.

    All camera implementations (real or fake) must implement this contract.
    """

    @abstractmethod
    def health_check(self) -> bool:
        """Return True if the camera is connected and usable."""
        pass

    @abstractmethod
    def start_running(self, resolution: Tuple[int, int]) -> None:
        """Bring the hardware up. May block."""
        pass

    @abstractmethod
    def stop_running(self) -> None:
        pass

    @abstractmethod
    def get_preview_frame(self) -> bytes:
        """Return a single JPEG frame"""
        pass

    @abstractmethod
    def capture_still(self) -> bytes:
        """Capture a single photo and return its encoded bytes."""
        pass

    def close(self) -> None:
        """Release the device. Safe to call more than once."""
        self.stop_running()


class CameraBackend(ABC):
    """
    Platform capture service: finds devices and opens inputs on them.
    """

    @abstractmethod
    def default_device(self, position: CameraPosition) -> Optional[CameraDevice]:
        """Return the default wide-angle camera at `position`, or None."""
        pass

    @abstractmethod
    def open(self, device: CameraDevice) -> Camera:
        """
        Construct a device input for `device`.

        Implementations should raise CameraError when the device cannot be bound.
        """
        pass
