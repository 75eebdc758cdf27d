from __future__ import annotations

import io

from PIL import Image, ImageOps, UnidentifiedImageError

from imaging.fill_light import FillLightSettings
from imaging.render_errors import RenderError


def mirror_jpeg(frame: bytes, quality: int = 80) -> bytes:
    """Flip a JPEG frame horizontally, the way a selfie preview is shown."""
    try:
        img = Image.open(io.BytesIO(frame)).convert("RGB")
    except (UnidentifiedImageError, OSError) as e:
        raise RenderError("Preview frame is not a readable image") from e

    out = io.BytesIO()
    ImageOps.mirror(img).save(out, format="JPEG", quality=quality)
    return out.getvalue()


def prepare_preview(frame: bytes, settings: FillLightSettings) -> bytes:
    if not settings.mirror:
        return frame
    return mirror_jpeg(frame)
