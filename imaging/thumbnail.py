from __future__ import annotations

import io
from typing import Tuple

from PIL import Image, ImageOps, UnidentifiedImageError


class ThumbnailError(Exception):
    pass


def render_thumbnail(data: bytes, size: Tuple[int, int], quality: int = 85) -> bytes:
    """Render a gallery tile from JPEG bytes.

    The source is scaled and center-cropped to fill `size` exactly
    (gallery tiles have a fixed height and crop rather than letterbox).
    """
    target_w, target_h = size
    if target_w <= 0 or target_h <= 0:
        raise ThumbnailError("Invalid thumbnail size")

    try:
        with Image.open(io.BytesIO(data)) as img:
            img = ImageOps.exif_transpose(img).convert("RGB")
            tile = ImageOps.fit(img, size, method=Image.Resampling.LANCZOS)
    except (UnidentifiedImageError, OSError) as e:
        raise ThumbnailError("Failed to load image") from e

    out = io.BytesIO()
    tile.save(out, format="JPEG", quality=quality)
    return out.getvalue()
