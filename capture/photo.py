import io
from dataclasses import dataclass, field
from datetime import datetime
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from capture.capture_errors import CaptureFailed


@dataclass(frozen=True)
class CapturedPhoto:
    data: bytes
    request_id: str
    size: Tuple[int, int] = (0, 0)
    captured_at: datetime = field(default_factory=datetime.now)


def decode_photo(data: bytes, request_id: str) -> CapturedPhoto:
    """Check that `data` is a readable image and wrap it as a CapturedPhoto."""
    if not data:
        raise CaptureFailed("Camera returned an empty photo")
    try:
        with Image.open(io.BytesIO(data)) as img:
            size = img.size
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise CaptureFailed("Camera returned data that is not an image") from e
    return CapturedPhoto(data=data, request_id=request_id, size=size)
