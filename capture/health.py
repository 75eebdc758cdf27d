from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, auto
from typing import List, Optional


class HealthLevel(Enum):
    OK = auto()
    WARNING = auto()
    ERROR = auto()


class HealthCode(Enum):
    CAMERA_NOT_DETECTED = auto()
    CAMERA_PERMISSION_DENIED = auto()
    CAPTURE_FAILED = auto()
    PHOTO_NOT_SAVED = auto()
    UNKNOWN_ERROR = auto()


class HealthSource(Enum):
    PERMISSION = auto()
    DEVICE = auto()
    PREVIEW = auto()
    CAPTURE = auto()
    LIBRARY = auto()


PERMISSION_INSTRUCTIONS = [
    "Allow camera access in the system settings",
    "Then tap the camera button again",
]

CAMERA_INSTRUCTIONS = [
    "Check that no other app is using the camera",
    "Check the USB cable if the camera is external",
    "Tap the camera button to try again",
]


@dataclass(frozen=True)
class HealthStatus:
    level: HealthLevel
    code: Optional[HealthCode] = None
    message: Optional[str] = None
    instructions: List[str] | None = None
    recoverable: bool = True
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @staticmethod
    def ok() -> "HealthStatus":
        return HealthStatus(level=HealthLevel.OK)

    @staticmethod
    def error(
            *,
            code: HealthCode,
            message: str,
            instructions: List[str],
            recoverable: bool = True,
    ) -> "HealthStatus":
        return HealthStatus(
            level=HealthLevel.ERROR,
            code=code,
            message=message,
            instructions=instructions,
            recoverable=recoverable,
        )

    @staticmethod
    def warning(*, code: HealthCode, message: str) -> "HealthStatus":
        return HealthStatus(level=HealthLevel.WARNING, code=code, message=message, instructions=[])

    def to_dict(self) -> dict:
        if self.level == HealthLevel.OK:
            return {"level": "OK"}

        return {
            "level": self.level.name,
            "code": self.code.name if self.code else None,
            "message": self.message,
            "instructions": self.instructions,
            "recoverable": self.recoverable,
        }
