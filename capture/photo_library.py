from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from pathlib import Path

from capture.capture_errors import PersistFailed
from capture.photo import CapturedPhoto


class PhotoLibrary(ABC):
    """
    Destination for captured photos.

    The controller hands every successful capture to the library and does not
    wait on the outcome beyond logging it.
    """

    @abstractmethod
    def save(self, photo: CapturedPhoto) -> Path:
        """
        Persist `photo` and return where it went.

        Implementations should raise PersistFailed on failure.
        """
        raise NotImplementedError


class DirectoryPhotoLibrary(PhotoLibrary):
    """Stores photos as JPEG files under `root/<yyyy-mm-dd>/`."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def album_dir(self, day: date) -> Path:
        return self.root / day.isoformat()

    def path_for(self, photo: CapturedPhoto) -> Path:
        stamp = photo.captured_at.strftime("%H%M%S_%f")
        return self.album_dir(photo.captured_at.date()) / f"photo_{stamp}_{photo.request_id[:8]}.jpg"

    def save(self, photo: CapturedPhoto) -> Path:
        path = self.path_for(photo)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(photo.data)
        except OSError as e:
            raise PersistFailed(f"Could not write {path}: {e}") from e
        return path
