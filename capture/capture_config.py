from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

from capture.camera_base import CameraPosition


class SessionPreset(Enum):
    LOW = (320, 240)
    MEDIUM = (640, 480)
    HIGH = (1280, 720)
    PHOTO = (1920, 1080)

    @property
    def resolution(self) -> Tuple[int, int]:
        return self.value


@dataclass(frozen=True)
class CaptureConfig:
    position: CameraPosition = CameraPosition.FRONT
    preset: SessionPreset = SessionPreset.HIGH

    # OpenCV device index per position
    front_index: int = 0
    back_index: Optional[int] = None

    preview_interval: float = 0.1  # seconds between preview polls
    capture_timeout: float = 10.0  # seconds a caller should wait on a capture

    library_root: Path = field(default_factory=lambda: Path("photos"))

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "CaptureConfig":
        """
        Build a config from `CAMERA_*` keys, e.g. a Flask app.config.

        Missing keys keep their defaults.
        """
        kwargs: dict = {}
        if "CAMERA_POSITION" in values:
            kwargs["position"] = CameraPosition[str(values["CAMERA_POSITION"]).upper()]
        if "CAMERA_PRESET" in values:
            kwargs["preset"] = SessionPreset[str(values["CAMERA_PRESET"]).upper()]
        if "CAMERA_FRONT_INDEX" in values:
            kwargs["front_index"] = int(values["CAMERA_FRONT_INDEX"])
        if values.get("CAMERA_BACK_INDEX") is not None:
            kwargs["back_index"] = int(values["CAMERA_BACK_INDEX"])
        if "CAMERA_PREVIEW_INTERVAL" in values:
            kwargs["preview_interval"] = float(values["CAMERA_PREVIEW_INTERVAL"])
        if "CAMERA_CAPTURE_TIMEOUT" in values:
            kwargs["capture_timeout"] = float(values["CAMERA_CAPTURE_TIMEOUT"])
        if "PHOTO_LIBRARY_ROOT" in values:
            kwargs["library_root"] = Path(values["PHOTO_LIBRARY_ROOT"])
        return cls(**kwargs)

    def positions(self) -> dict:
        positions = {CameraPosition.FRONT: self.front_index}
        if self.back_index is not None:
            positions[CameraPosition.BACK] = self.back_index
        return positions
